"""Static lookup tables for tracker custom fields and storage routing."""

# Custom field ids on the request board
CUSTOM_FIELDS = {
    "request": "1211551541910237",
    "client": "1211551542058961",
    "billable": "1211551542058970",
    "value": "1211551542058988",
    "estimated_time": "1209588204727028",
    "google_folder": "1211701715737841",
    "project_number": "1210695790941177",
    "region": "1212310605793914",
}

REQUEST_TYPE_OPTIONS = {
    "Creative Design Services": "1211551541910239",
    "Mockup": "1211551541910241",
    "PPTX": "1211551541910242",
    "Proofs": "1211551541910243",
    "Sneak Peek": "1211551541910244",
    # shares the Sneak Peek option until the board gets its own
    "Rise & Shine": "1211551541910244",
}

PROJECT_VALUE_OPTIONS = {
    "<$50k": "1211551542058989",
    "$50k-$250k": "1211551542058990",
    ">$250k": "1211551542058991",
}

BILLABLE_OPTIONS = {
    "Yes": "1211551542058971",
    "No": "1211551542058972",
}

REGION_OPTIONS = {
    "US": "1212310605793915",
    "CAD": "1212310605793916",
    "EU": "1212310605793917",
    "UK": "1212310605793918",
    "APAC": "1212310605793919",
}

# active hours per Rise & Shine deck level
RISE_AND_SHINE_HOURS = {
    "Bronze": 12,
    "Silver": 30,
    "Gold": 60,
}

# Categories rendered with the lightweight description template.
LIGHTWEIGHT_REQUEST_TYPES = {"Creative Design Services"}

# Storage hierarchy
PARTITION_A_L = "A-L"
PARTITION_M_Z = "M-Z"
NON_ALPHA_BUCKET = "#"
LEAF_SUBFOLDERS = ("Attachments", "Working Files", "Final")
ATTACHMENTS_SUBFOLDER = "Attachments"

# Pipeline step names, as recorded in error details
STEP_CREATE_RECORD = "firestore_create"
STEP_DRIVE_FOLDER = "drive_folder"
STEP_ASANA_CREATE = "asana_create"
STEP_COMPLETE_RECORD = "firestore_complete"
