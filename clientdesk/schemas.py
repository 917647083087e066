from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from bs4 import BeautifulSoup
from pydantic import BaseModel, Field, field_validator

PLACEHOLDER_SUMMARY = "To be summarized"


class ProjectType(str, Enum):
    BUSINESS = "business"
    INDIVIDUAL = "individual"


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class ChannelType(str, Enum):
    GMAIL = "gmail"
    SLACK = "slack"


class DocumentSource(str, Enum):
    EMAIL = "email"
    MANUAL = "manual"


class DocumentSourceFilter(str, Enum):
    ALL = "all"
    EMAIL = "email"
    MANUAL = "manual"


class MessageDirection(str, Enum):
    ALL = "all"
    FROM_CONTACT = "from_contact"
    FROM_ME = "from_me"


class ReadStatus(str, Enum):
    ALL = "all"
    READ = "read"
    UNREAD = "unread"


class SummaryType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


# Projects

def normalize_start_date(value: str) -> str:
    # A bare calendar date is pinned to 08:00 UTC so it renders as the same day everywhere.
    if len(value) == 10:
        date.fromisoformat(value)
        return f"{value}T08:00:00Z"
    return value


class ProjectCreate(BaseModel):
    name: str
    description: Optional[str] = None
    project_type: ProjectType = ProjectType.BUSINESS
    project_context_detail: str = ""
    start_date: str

    @field_validator("start_date")
    @classmethod
    def _start_date(cls, v: str) -> str:
        return normalize_start_date(v)


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    project_type: Optional[ProjectType] = None
    project_context_detail: Optional[str] = None
    status: Optional[ProjectStatus] = None


class Project(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    project_type: ProjectType
    project_context_detail: str = ""
    status: ProjectStatus
    start_date: str
    avatar_letter: str = ""
    user_id: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def start_day(self) -> date:
        return date.fromisoformat(self.start_date[:10])

    @property
    def is_active(self) -> bool:
        return self.status == ProjectStatus.ACTIVE


class ProjectMetrics(BaseModel):
    unread_messages_count: int = 0
    connected_channels_count: int = 0
    documents_count: int = 0


# Channels

class ChannelCreate(BaseModel):
    project_id: str
    channel_type: ChannelType
    is_connected: bool = False


class ChannelUpdate(BaseModel):
    is_connected: Optional[bool] = None


class Channel(BaseModel):
    id: str
    project_id: str
    channel_type: ChannelType
    is_connected: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ChannelMetrics(BaseModel):
    contacts_count: int = 0
    messages_count: int = 0


class StatusResponse(BaseModel):
    status: str
    status_message: str = ""


class OAuthUrlResponse(BaseModel):
    oauth_url: str = ""
    status_message: str = ""
    requires_oauth: bool = False


# Contacts

class ContactCreate(BaseModel):
    channel_id: str
    account_identifier: str
    name: Optional[str] = None

    @field_validator("account_identifier")
    @classmethod
    def _identifier(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("account_identifier must not be blank")
        return v

    @field_validator("name")
    @classmethod
    def _name(cls, v: Optional[str]) -> Optional[str]:
        return (v or "").strip() or None


class ContactUpdate(BaseModel):
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: Optional[str]) -> Optional[str]:
        return (v or "").strip() or None


class Contact(BaseModel):
    id: str
    channel_id: str
    account_identifier: str
    name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.name or self.account_identifier


class ContactMetrics(BaseModel):
    messages_count: int = 0
    last_activity: Optional[datetime] = None


# Messages

class AttachmentInfo(BaseModel):
    filename: str
    file_type: str
    file_size: int
    attachment_id: str
    document_id: Optional[str] = None


class Message(BaseModel):
    id: str
    platform_message_id: str = ""
    contact_id: str
    sender_account: str
    recipient_accounts: List[str] = Field(default_factory=list)
    cc_accounts: List[str] = Field(default_factory=list)
    subject: Optional[str] = None
    body_text: Optional[str] = None
    body_html: Optional[str] = None
    registered_at: datetime
    thread_id: Optional[str] = None
    is_read: bool = False
    is_from_contact: bool = False
    attachments: List[AttachmentInfo] = Field(default_factory=list)

    @property
    def preview_text(self) -> str:
        if self.body_text:
            return self.body_text
        if self.body_html:
            return BeautifulSoup(self.body_html, "html.parser").get_text(" ", strip=True)
        return ""


class MessageFilter(BaseModel):
    project_id: Optional[str] = None
    channel_id: Optional[str] = None
    contact_id: Optional[str] = None
    thread_id: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_read: Optional[bool] = None
    is_from_contact: Optional[bool] = None
    limit: int = 100
    offset: int = 0

    def to_params(self) -> dict:
        params = {}
        for key, value in self.model_dump(exclude_none=True).items():
            if isinstance(value, bool):
                value = "true" if value else "false"
            params[key] = str(value)
        return params


class MessageFetchRequest(BaseModel):
    project_id: str
    channel_id: str
    contact_ids: List[str]


class MessageUpdate(BaseModel):
    is_read: bool


# Documents

class Document(BaseModel):
    id: str
    project_id: str
    folder_id: Optional[str] = None
    safe_file_name: str
    original_file_name: Optional[str] = None
    file_path: str = ""
    file_type: str = ""
    file_size: int = 0
    source: DocumentSource
    created_at: datetime
    updated_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.original_file_name or self.safe_file_name


class DocumentDownload(BaseModel):
    download_url: str
    file_name: str
    file_type: str
    file_size: int


# Timeline recap

class RecapSummary(BaseModel):
    id: str
    project_id: str
    summary_type: SummaryType
    start_date: datetime
    end_date: datetime
    content: str

    @property
    def is_placeholder(self) -> bool:
        return self.content == PLACEHOLDER_SUMMARY


class TimelineRecap(BaseModel):
    recent_activity: List[RecapSummary] = Field(default_factory=list)
    past_2_weeks: List[RecapSummary] = Field(default_factory=list)

    @property
    def has_generatable_content(self) -> bool:
        return any(s.is_placeholder for s in self.recent_activity + self.past_2_weeks)


# Todos

class TodoItem(BaseModel):
    id: str
    description: str
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    display_order: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TodoList(BaseModel):
    id: str
    project_id: str
    start_date: datetime
    end_date: datetime
    summary: str = ""
    items: List[TodoItem] = Field(default_factory=list)

    @property
    def completed_count(self) -> int:
        return sum(1 for i in self.items if i.is_completed)


class TodoGenerateRequest(BaseModel):
    start_date: str
    end_date: str


class TodoListUpdate(BaseModel):
    items: List[TodoItem]
