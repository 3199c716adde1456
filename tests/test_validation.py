import pytest

from schemas import (
    BlogCreate,
    BlogUpdate,
    CommentCreate,
    ContactMessage,
    ExperienceCreate,
    ExperienceUpdate,
    ProfileUpdate,
    ProjectCreate,
)
from validation import ValidationFailure, split_csv, validate


def blog(**overrides):
    payload = {"title": "Hello world", "slug": "hello-world"}
    payload.update(overrides)
    return payload


@pytest.mark.parametrize("slug", ["my-post-2", "abc", "2024-recap"])
def test_slug_accepts_lowercase_hyphen(slug):
    assert validate(blog(slug=slug), BlogCreate).slug == slug


@pytest.mark.parametrize("slug", ["My Post!", "my_post", "Caps", ""])
def test_slug_rejects_other_characters(slug):
    with pytest.raises(ValidationFailure) as exc_info:
        validate(blog(slug=slug), BlogCreate)
    assert "slug" in exc_info.value.field_errors


def test_blog_create_defaults():
    post = validate(blog(), BlogCreate)
    assert post.status == "draft"
    assert post.featured is False
    assert post.tags == []
    assert post.cover_image_url is None


def test_blog_title_minimum_length():
    with pytest.raises(ValidationFailure) as exc_info:
        validate(blog(title="Hey"), BlogCreate)
    assert list(exc_info.value.field_errors) == ["title"]


def test_excerpt_maximum_length():
    validate(blog(excerpt="x" * 400), BlogCreate)
    with pytest.raises(ValidationFailure):
        validate(blog(excerpt="x" * 401), BlogCreate)


def test_status_must_be_known():
    with pytest.raises(ValidationFailure) as exc_info:
        validate(blog(status="archived"), BlogCreate)
    assert "status" in exc_info.value.field_errors


def test_empty_url_becomes_none():
    assert validate(blog(cover_image_url=""), BlogCreate).cover_image_url is None


def test_invalid_url_rejected_with_safe_message():
    with pytest.raises(ValidationFailure) as exc_info:
        validate(blog(cover_image_url="not a url"), BlogCreate)
    assert exc_info.value.field_errors["cover_image_url"] == ["must be a valid URL"]
    assert str(exc_info.value).startswith("Invalid")


def test_tags_from_comma_separated_string():
    post = validate(blog(tags=" ml, , python ,deep-learning "), BlogCreate)
    assert post.tags == ["ml", "python", "deep-learning"]


def test_split_csv_leaves_lists_alone():
    assert split_csv(["a", " b "]) == ["a", " b "]


def test_update_tracks_supplied_fields_only():
    update = validate({"title": "New title"}, BlogUpdate)
    assert update.model_fields_set == {"title"}


def test_update_applies_same_constraints():
    with pytest.raises(ValidationFailure):
        validate({"slug": "Bad Slug"}, BlogUpdate)


def test_project_category_enum_and_required():
    payload = {"title": "Vision", "description": "A long enough description"}
    with pytest.raises(ValidationFailure) as exc_info:
        validate(payload, ProjectCreate)
    assert "category" in exc_info.value.field_errors
    project = validate({**payload, "category": "deep_learning", "technologies": "PyTorch, CUDA"}, ProjectCreate)
    assert project.technologies == ["PyTorch", "CUDA"]


@pytest.mark.parametrize("end_date", ["", None])
def test_nullable_end_date(end_date):
    entry = validate(
        {"title": "Engineer", "organization": "Acme", "start_date": "2020-01-01", "end_date": end_date, "type": "work"},
        ExperienceCreate,
    )
    assert entry.end_date is None
    assert entry.current is False


def test_experience_update_clears_description_with_empty_string():
    update = validate({"description": ""}, ExperienceUpdate)
    assert update.description is None
    assert "description" in update.model_fields_set
    with pytest.raises(ValidationFailure):
        validate({"description": "short"}, ExperienceUpdate)


def test_experience_type_enum():
    with pytest.raises(ValidationFailure) as exc_info:
        validate({"title": "Engineer", "organization": "Acme", "start_date": "2020", "type": "hobby"}, ExperienceCreate)
    assert "type" in exc_info.value.field_errors


def test_profile_email_and_bio_bounds():
    with pytest.raises(ValidationFailure) as exc_info:
        validate({"email": "nope", "bio": "x" * 2001}, ProfileUpdate)
    assert set(exc_info.value.field_errors) == {"email", "bio"}


def test_comment_message_bounds():
    with pytest.raises(ValidationFailure):
        validate({"author": "Sam", "message": "x" * 4}, CommentCreate)
    validate({"author": "Sam", "message": "x" * 5}, CommentCreate)
    validate({"author": "Sam", "message": "x" * 500}, CommentCreate)
    with pytest.raises(ValidationFailure) as exc_info:
        validate({"author": "Sam", "message": "x" * 501}, CommentCreate)
    assert "message" in exc_info.value.field_errors


def test_comment_author_bounds():
    with pytest.raises(ValidationFailure):
        validate({"author": "J", "message": "hello there"}, CommentCreate)
    validate({"author": "Jo", "message": "hello there"}, CommentCreate)
    with pytest.raises(ValidationFailure):
        validate({"author": "x" * 51, "message": "hello there"}, CommentCreate)


def test_comment_author_allows_characters_contact_rejects():
    # comments allow any author string; the contact form is stricter
    validate({"author": "R2-D2 #1", "message": "beep boop"}, CommentCreate)
    with pytest.raises(ValidationFailure) as exc_info:
        validate({"name": "R2-D2 #1", "email": "r2@example.com", "message": "beep boop beep"}, ContactMessage)
    assert "name" in exc_info.value.field_errors


def test_contact_sanitizes_before_validating():
    contact = validate({"name": "  O'Brien ", "email": "ob@example.com", "message": "<b>Hello</b> there, friend"}, ContactMessage)
    assert contact.name == "O'Brien"
    assert contact.message == "bHello/b there, friend"


def test_non_object_payload_rejected():
    with pytest.raises(ValidationFailure) as exc_info:
        validate(["not", "an", "object"], BlogCreate)
    assert "_root" in exc_info.value.field_errors
