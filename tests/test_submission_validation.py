import pytest

from app.quietmap.errors import ValidationError
from app.quietmap.modules.submissions.validation import clean_venue_submission, merge_submission_input


def _payload(**overrides):
    data = {
        "proposedName": "Calm Café",
        "city": "Leeds",
        "postcode": "ls1 2ab",
        "tags": ["Quiet"],
    }
    data.update(overrides)
    return data


def _field_errors(data):
    with pytest.raises(ValidationError) as exc:
        clean_venue_submission(data)
    return exc.value.field_errors


def test_minimal_payload_is_cleaned():
    out = clean_venue_submission(_payload(proposedName="  Calm Café  ", unknown="dropped"))
    assert out == {"proposedName": "Calm Café", "city": "Leeds", "postcode": "ls1 2ab", "tags": ["Quiet"]}


def test_required_fields():
    errors = _field_errors({})
    assert set(errors) >= {"proposedName", "city", "postcode", "tags"}


def test_name_length_bounds():
    assert "proposedName" in _field_errors(_payload(proposedName="A"))
    assert "proposedName" in _field_errors(_payload(proposedName="x" * 121))


def test_postcode_must_look_british():
    errors = _field_errors(_payload(postcode="90210"))
    assert errors["postcode"] == ["Postcode must be a valid UK postcode."]


def test_phone_digits_only():
    assert "phone" in _field_errors(_payload(phone="0113 496 0000"))
    assert "phone" in _field_errors(_payload(phone="123"))
    assert clean_venue_submission(_payload(phone="01134960000"))["phone"] == "01134960000"


def test_website_and_images_must_be_http_urls():
    errors = _field_errors(_payload(website="example.com", coverImageUrl="ftp://x/y.png", imageUrls=["nope"]))
    assert set(errors) == {"website", "coverImageUrl", "imageUrls"}


def test_gallery_capped_at_ten():
    urls = [f"https://img.test/{i}.jpg" for i in range(11)]
    assert "imageUrls" in _field_errors(_payload(imageUrls=urls))
    assert len(clean_venue_submission(_payload(imageUrls=urls[:10]))["imageUrls"]) == 10


def test_tags_must_not_be_empty():
    assert _field_errors(_payload(tags=[" ", ""]))["tags"] == ["Pick at least 1 tag."]
    assert "tags" in _field_errors(_payload(tags="quiet"))


def test_nested_objects_report_dotted_fields():
    errors = _field_errors(
        _payload(
            sensory={"noiseLevel": "DEAFENING", "quietSpace": "yes"},
            facilities={"parking": 1, "notes": "x" * 601},
        )
    )
    assert set(errors) == {"sensory.noiseLevel", "sensory.quietSpace", "facilities.parking", "facilities.notes"}


def test_nested_objects_are_kept_when_valid():
    out = clean_venue_submission(
        _payload(sensory={"noiseLevel": "LOW", "quietSpace": True}, facilities={"parking": False})
    )
    assert out["sensory"] == {"noiseLevel": "LOW", "quietSpace": True}
    assert out["facilities"] == {"parking": False}


def test_non_object_payload_rejected():
    with pytest.raises(ValidationError) as exc:
        merge_submission_input(["not", "an", "object"], None)
    assert "payload" in exc.value.field_errors


def test_explicit_name_wins_over_payload():
    merged = merge_submission_input({"proposedName": "Old"}, "New")
    assert merged["proposedName"] == "New"
    assert merge_submission_input(None, None) == {}
