"""
Turn a request payload into what the storage and tracker services expect:
folder names, rich-text task descriptions and custom-field maps.
"""

import html
import re
from datetime import datetime
from typing import Optional, Union

from request_pipeline import constants
from request_pipeline.records import UploadedFile
from request_pipeline.schema import Product, RequestPayload, WebsiteLink

INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
MAX_NAME_LENGTH = 255


def sanitize_filename(name: str) -> str:
    cleaned = INVALID_FILENAME_CHARS.sub("_", name).strip()
    return cleaned[:MAX_NAME_LENGTH] or "untitled"


def strip_html(value: str) -> str:
    text = re.sub(r"<br\s*/?>", "\n", value, flags=re.IGNORECASE)
    text = re.sub(r"</p>", "\n\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    return html.unescape(text).strip()


def generate_folder_name(payload: RequestPayload, submitted_at: datetime) -> str:
    """Leaf folder name: "YYYY-MM-DD - Client - Title"."""
    date = submitted_at.strftime("%Y-%m-%d")
    return sanitize_filename(f"{date} - {payload.client_name} - {payload.request_title}")


def first_letter_bucket(client_name: str) -> str:
    first = client_name.strip()[:1].upper()
    return first if "A" <= first <= "Z" else constants.NON_ALPHA_BUCKET


def partition_for_client(client_name: str) -> str:
    first = client_name.strip()[:1].upper()
    if "M" <= first <= "Z":
        return constants.PARTITION_M_Z
    # A-L, digits, symbols and empty names all land in A-L
    return constants.PARTITION_A_L


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    if size < 1024 ** 3:
        return f"{size / (1024 * 1024):.1f} MB"
    return f"{size / 1024 ** 3:.1f} GB"


# --- task description -------------------------------------------------------

def _e(value) -> str:
    return html.escape(str(value), quote=True)


def _line(label: str, value) -> str:
    return f"<strong>{_e(label)}:</strong> {_e(value)}"


def _link(url: str, text: str) -> str:
    return f'<a href="{_e(url)}">{_e(text)}</a>'


def format_products(products: list[Product]) -> str:
    blocks = []
    for index, product in enumerate(products, 1):
        items = []
        if product.link:
            items.append(f"<li>Link: {_link(product.link, product.link)}</li>")
        for label, value in (
            ("Color", product.color),
            ("Imprint Method", product.imprint_method),
            ("Imprint Color", product.imprint_color),
            ("Location", product.location),
            ("Size", product.size),
            ("Notes", product.notes),
        ):
            if value:
                items.append(f"<li>{label}: {_e(value)}</li>")
        block = f"<strong>Product {index}: {_e(product.name or 'Unnamed Product')}</strong>"
        if items:
            block += "<ul>" + "".join(items) + "</ul>"
        blocks.append(block)
    return "\n".join(blocks)


def format_website_links(links: list[WebsiteLink]) -> str:
    items = "".join(f"<li><strong>{_e(link.type)}</strong>: {_link(link.url, link.url)}</li>" for link in links)
    return f"<ul>{items}</ul>" if items else ""


def _context_section(payload: RequestPayload) -> list[str]:
    lines = [
        "<h2>Request Details</h2>",
        _line("Request Type", payload.request_type),
        _line("Client", payload.client_name),
        _line("Request Title", payload.request_title),
        _line("Region", payload.region or "Not specified"),
        _line("Submitted By", f"{payload.requestor_name} ({payload.requestor_email})"),
    ]
    if payload.due_date:
        due = payload.due_date + (f" at {payload.due_time}" if payload.due_time else "")
        lines.append(_line("Due Date", due))
    return lines


def _billing_section(payload: RequestPayload) -> list[str]:
    lines = ["<h2>Project Information</h2>"]
    if payload.project_number:
        lines.append(_line("Project Number", payload.project_number))
    lines.append(_line("Project Value", payload.project_value or "Not specified"))
    lines.append(_line("Billable", payload.billable or "Not specified"))
    if payload.client_type:
        lines.append(_line("Client Type", payload.client_type))
    if payload.labels:
        lines.append(_line("Labels", ", ".join(payload.labels)))
    if payload.add_collaborators and payload.collaborators:
        lines.append(_line("Collaborators", ", ".join(payload.collaborators)))
    return lines


def _notes_section(payload: RequestPayload) -> list[str]:
    if not payload.pertinent_information:
        return []
    text = strip_html(payload.pertinent_information)
    if not text:
        return []
    return ["<h2>Pertinent Information</h2>", _e(text)]


def _category_section(payload: RequestPayload) -> list[str]:
    fields: list[tuple[str, object]] = []
    kind = payload.request_type
    if kind == "Mockup":
        fields = [("Mockup Type", payload.mockup_type)]
    elif kind == "PPTX":
        fields = [
            ("PPTX Type", payload.pptx_type),
            ("Number of Slides", payload.number_of_slides),
            ("Presentation Structure", payload.presentation_structure),
        ]
    elif kind == "Rise & Shine":
        fields = [
            ("Level", payload.rise_and_shine_level),
            ("Number of Slides", payload.number_of_slides),
            ("Presentation Structure", payload.presentation_structure),
        ]
    elif kind == "Proofs":
        fields = [("Proof Type", payload.proof_type)]
    elif kind == "Sneak Peek":
        fields = [("Sneak Peek Options", payload.sneak_peek_options)]

    lines = [_line(label, value) for label, value in fields if value]
    return ["<h2>Request-Specific Details</h2>", *lines] if lines else []


def build_lightweight_description(payload: RequestPayload) -> list[str]:
    return _context_section(payload) + _billing_section(payload) + _notes_section(payload)


def build_full_description(payload: RequestPayload) -> list[str]:
    sections = _context_section(payload) + _category_section(payload)
    if payload.products:
        sections += ["<h2>Products</h2>", format_products(payload.products)]
    sections += _billing_section(payload) + _notes_section(payload)
    if payload.website_links:
        sections += ["<h2>Website &amp; Social Links</h2>", format_website_links(payload.website_links)]
    return sections


def build_task_description(
    payload: RequestPayload,
    folder_url: Optional[str] = None,
    uploaded_files: Optional[list[UploadedFile]] = None,
) -> str:
    """Rich-text task body, wrapped in <body> as the tracker requires."""
    if payload.request_type in constants.LIGHTWEIGHT_REQUEST_TYPES:
        sections = build_lightweight_description(payload)
    else:
        sections = build_full_description(payload)

    if folder_url:
        sections += ["<h2>Files</h2>", _link(folder_url, "View Files in Google Drive")]
        if uploaded_files:
            items = "".join(f"<li>{_link(f.url, f.name)}</li>" for f in uploaded_files)
            sections.append(f"<ul>{items}</ul>")

    return "<body>" + "\n".join(sections) + "</body>"


def format_custom_fields(payload: RequestPayload, folder_url: Optional[str] = None) -> dict[str, Union[str, int]]:
    """Map payload values to tracker custom fields. Values with no lookup entry are left out."""
    ids = constants.CUSTOM_FIELDS
    fields: dict[str, Union[str, int]] = {}

    enum_lookups = (
        ("request", constants.REQUEST_TYPE_OPTIONS, payload.request_type),
        ("region", constants.REGION_OPTIONS, payload.region),
        ("billable", constants.BILLABLE_OPTIONS, payload.billable),
        ("value", constants.PROJECT_VALUE_OPTIONS, payload.project_value),
    )
    for field, options, value in enum_lookups:
        option_id = options.get(value) if value else None
        if option_id:
            fields[ids[field]] = option_id

    if payload.client_name:
        fields[ids["client"]] = payload.client_name
    if payload.project_number:
        fields[ids["project_number"]] = payload.project_number
    if folder_url:
        fields[ids["google_folder"]] = folder_url

    hours = constants.RISE_AND_SHINE_HOURS.get(payload.rise_and_shine_level or "")
    if payload.request_type == "Rise & Shine" and hours:
        fields[ids["estimated_time"]] = hours

    return fields
