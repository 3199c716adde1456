from unittest.mock import MagicMock

from pymongo.errors import ServerSelectionTimeoutError

from database import BLOG, BLOG_COMMENT, PROFILE, PROJECT, get_db, utcnow
from main import app


def broken_db():
    database = MagicMock()
    collection = database.__getitem__.return_value
    collection.find.side_effect = ServerSelectionTimeoutError("no servers")
    collection.find_one.side_effect = ServerSelectionTimeoutError("no servers")
    return database


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "ok"
    assert client.get("/test").json()["database"] == "connected"


def test_health_without_backend(client):
    app.dependency_overrides[get_db] = lambda: None
    assert client.get("/test").json()["database"] == "not-available"


def test_portfolio_reads_use_fallback_without_backend(client, fallback):
    app.dependency_overrides[get_db] = lambda: None
    assert client.get("/api/portfolio/user").json() == fallback.profile
    assert client.get("/api/portfolio/projects").json() == fallback.projects
    assert client.get("/api/portfolio/experiences").json() == fallback.experiences


def test_portfolio_reads_fall_back_when_backend_fails(client, fallback):
    app.dependency_overrides[get_db] = broken_db
    assert client.get("/api/portfolio/user").json() == fallback.profile
    assert client.get("/api/portfolio/projects").json() == fallback.projects
    assert client.get("/api/blogs").json() == fallback.blog_posts


def test_profile_from_store(client, mongo):
    mongo[PROFILE].insert_one({"_id": "profile", "full_name": "Alex", "created_at": utcnow()})
    assert client.get("/api/portfolio/user").json() == {"full_name": "Alex"}


def test_empty_profile_falls_back(client, fallback):
    assert client.get("/api/portfolio/user").json() == fallback.profile


def test_projects_from_store(client, mongo):
    mongo[PROJECT].insert_one({"_id": "pr1", "title": "Vision", "category": "other", "created_date": utcnow()})
    projects = client.get("/api/portfolio/projects").json()
    assert [p["id"] for p in projects] == ["pr1"]


def test_blog_list_hides_drafts_and_attaches_comments(client, mongo):
    mongo[BLOG].insert_many([
        {"_id": "p1", "slug": "one", "title": "One post", "status": "published", "created_date": utcnow()},
        {"_id": "d1", "slug": "two", "title": "Two post", "status": "draft", "created_date": utcnow()},
    ])
    mongo[BLOG_COMMENT].insert_one({"_id": "c1", "blog_id": "p1", "author": "Sam", "message": "Nice one", "created_at": utcnow()})
    posts = client.get("/api/blogs").json()
    assert [p["id"] for p in posts] == ["p1"]
    assert posts[0]["likes"] == 0
    assert posts[0]["comments"][0]["author"] == "Sam"


def test_blog_detail_by_slug_or_id(client, mongo):
    mongo[BLOG].insert_one({"_id": "p1", "slug": "one", "title": "One post", "status": "published", "likes": 3})
    assert client.get("/api/blogs/one").json()["id"] == "p1"
    assert client.get("/api/blogs/p1").json()["likes"] == 3


def test_draft_detail_is_not_found(client, mongo):
    mongo[BLOG].insert_one({"_id": "d1", "slug": "draft", "title": "Draft post", "status": "draft"})
    response = client.get("/api/blogs/draft")
    assert response.status_code == 404
    assert response.json() == {"error": "Blog post not found"}


def test_blog_detail_falls_back_to_bundled_post(client):
    post = client.get("/api/blogs/attention-explained-slowly").json()
    assert post["id"] == "b-attention-explained"
    assert client.get("/api/blogs/notes-on-evaluation").status_code == 404


def test_fallback_helpers(fallback):
    assert all(p["status"] == "published" for p in fallback.blog_posts)
    assert fallback.projects_by_category("all") == fallback.projects
    assert all(p.get("featured") for p in fallback.featured_projects())


def test_project_filters_in_fallback_mode(client):
    app.dependency_overrides[get_db] = lambda: None
    featured = client.get("/api/portfolio/projects", params={"featured": "true"}).json()
    assert {p["id"] for p in featured} == {"p-image-captioning", "p-portfolio-site"}
    by_category = client.get("/api/portfolio/projects", params={"category": "data_science"}).json()
    assert [p["id"] for p in by_category] == ["p-churn-analysis"]


def test_project_filters_against_store(client, mongo):
    mongo[PROJECT].insert_many([
        {"_id": "a", "title": "A", "category": "other", "featured": True, "created_date": utcnow()},
        {"_id": "b", "title": "B", "category": "other", "featured": False, "created_date": utcnow()},
        {"_id": "c", "title": "C", "category": "data_science", "featured": True, "created_date": utcnow()},
    ])
    featured_other = client.get("/api/portfolio/projects", params={"category": "other", "featured": "true"}).json()
    assert [p["id"] for p in featured_other] == ["a"]
