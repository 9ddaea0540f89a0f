import re
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

RequestType = Literal[
    "Creative Design Services",
    "Mockup",
    "PPTX",
    "Proofs",
    "Sneak Peek",
    "Rise & Shine",
]
Region = Literal["US", "CAD", "EU", "UK", "APAC"]
ProjectValue = Literal["<$50k", "$50k-$250k", ">$250k"]
Billable = Literal["Yes", "No"]
RiseAndShineLevel = Literal["Bronze", "Silver", "Gold"]
Label = Literal["Call Needed", "Rush", "Needs Creative"]

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _check_email(value: str) -> str:
    value = value.strip()
    if not EMAIL_RE.match(value):
        raise ValueError(f"Invalid email address: {value!r}")
    return value


class IntakeModel(BaseModel):
    # Intake JSON arrives camelCased; Python code uses snake_case.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Product(IntakeModel):
    id: str = ""
    name: str = Field(..., min_length=1)
    color: Optional[str] = None
    imprint_method: Optional[str] = None
    imprint_color: Optional[str] = None
    location: Optional[str] = None
    size: Optional[str] = None
    link: Optional[str] = None
    notes: Optional[str] = None


class WebsiteLink(IntakeModel):
    id: str = ""
    type: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)


class Attachment(IntakeModel):
    """Attachment metadata plus the base64 body sent by the intake form."""

    id: str = ""
    name: str
    size: int = Field(default=0, ge=0)
    mime_type: str = "application/octet-stream"
    base64_data: Optional[str] = Field(default=None, repr=False)


class RequestPayload(IntakeModel):
    # basic information
    request_type: RequestType
    requestor_name: str = Field(..., min_length=1)
    requestor_email: str
    region: Optional[Region] = None
    request_title: str = Field(..., min_length=1, max_length=200)

    # client
    client_name: str = Field(..., min_length=1)
    client_exists: bool = False
    client_id: Optional[str] = None

    due_date: Optional[str] = None
    due_time: Optional[str] = None

    # project metadata
    project_number: Optional[str] = None
    project_value: Optional[ProjectValue] = None
    billable: Optional[Billable] = None
    client_type: Optional[str] = None

    add_collaborators: bool = False
    collaborators: List[str] = []
    labels: List[Label] = []

    pertinent_information: Optional[str] = None

    # category specific
    mockup_type: Optional[str] = None
    pptx_type: Optional[str] = None
    number_of_slides: Optional[int] = Field(default=None, gt=0)
    presentation_structure: Optional[str] = None
    rise_and_shine_level: Optional[RiseAndShineLevel] = None
    proof_type: Optional[str] = None
    sneak_peek_options: Optional[str] = None

    # repeatable sections
    products: List[Product] = []
    website_links: List[WebsiteLink] = []
    attachments: List[Attachment] = []

    @field_validator("requestor_name", "request_title", "client_name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Value must not be blank.")
        return v

    @field_validator("requestor_email")
    @classmethod
    def validate_requestor_email(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("collaborators")
    @classmethod
    def validate_collaborators(cls, v):
        return [_check_email(item) for item in v]

    @field_validator("due_time")
    @classmethod
    def validate_due_time(cls, v):
        if v and not TIME_RE.match(v):
            raise ValueError("Due time must be HH:MM.")
        return v
