import pytest

from conftest import PROJECT_ID, make_payload
from request_pipeline import constants
from request_pipeline.errors import StepIntegrationError
from request_pipeline.records import UploadedFile

FIELDS = constants.CUSTOM_FIELDS
FILES = [
    UploadedFile(id="f1", name="brief.pdf", url="https://drive.example.test/files/f1"),
    UploadedFile(id="f2", name="logo.ai", url="https://drive.example.test/files/f2"),
]


def test_creates_task_with_mapped_fields(creator, task_service):
    out = creator.create_task(make_payload(), "https://drive.example.test/folders/x", FILES)

    spec = task_service.tasks[out.task_id]
    assert spec.title == "Spring Catalog"
    assert spec.project_id == PROJECT_ID
    assert spec.due_date == "2026-11-02"
    assert spec.custom_fields[FIELDS["request"]] == constants.REQUEST_TYPE_OPTIONS["Proofs"]
    assert spec.custom_fields[FIELDS["region"]] == constants.REGION_OPTIONS["US"]
    assert spec.custom_fields[FIELDS["billable"]] == constants.BILLABLE_OPTIONS["Yes"]
    assert spec.custom_fields[FIELDS["value"]] == constants.PROJECT_VALUE_OPTIONS["<$50k"]
    assert spec.custom_fields[FIELDS["google_folder"]] == "https://drive.example.test/folders/x"
    assert out.task_url == f"https://app.asana.com/0/{PROJECT_ID}/{out.task_id}"


def test_unmapped_fields_are_omitted(creator, task_service):
    payload = make_payload(region=None, billable=None, projectValue=None)

    out = creator.create_task(payload, None, [])

    fields = task_service.tasks[out.task_id].custom_fields
    assert FIELDS["region"] not in fields
    assert FIELDS["billable"] not in fields
    assert FIELDS["value"] not in fields
    assert FIELDS["google_folder"] not in fields
    assert fields[FIELDS["client"]] == "Acme"


def test_files_attached_as_external_links(creator, task_service):
    out = creator.create_task(make_payload(), "https://drive.example.test/folders/x", FILES)

    assert task_service.links[out.task_id] == [
        ("brief.pdf", "https://drive.example.test/files/f1"),
        ("logo.ai", "https://drive.example.test/files/f2"),
    ]


def test_collaborators_recorded_as_comment(creator, task_service):
    payload = make_payload(addCollaborators=True, collaborators=["a@example.com", "b@example.com"])

    out = creator.create_task(payload, None, [])

    assert task_service.comments[out.task_id] == ["Collaborators to notify: a@example.com, b@example.com"]


def test_side_effect_failures_do_not_fail_step(creator, task_service):
    task_service.fail_side_effects = True
    payload = make_payload(addCollaborators=True, collaborators=["a@example.com"])

    out = creator.create_task(payload, "https://drive.example.test/folders/x", FILES)

    assert out.task_id in task_service.tasks
    assert task_service.links == {}
    assert task_service.comments == {}


def test_creation_failure_raises_step_error(creator, task_service):
    task_service.fail_create = True

    with pytest.raises(StepIntegrationError) as exc:
        creator.create_task(make_payload(), None, FILES)

    assert exc.value.step == "asana_create"
    assert "Asana integration failed" in str(exc.value)
    assert task_service.links == {}


def test_rise_and_shine_estimated_hours(creator, task_service):
    payload = make_payload(requestType="Rise & Shine", riseAndShineLevel="Silver", numberOfSlides=20)

    out = creator.create_task(payload, None, [])

    assert task_service.tasks[out.task_id].custom_fields[FIELDS["estimated_time"]] == 30
