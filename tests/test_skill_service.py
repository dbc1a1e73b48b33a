import pytest
from pymongo.errors import DuplicateKeyError

from app.services.exceptions import InvalidInput, NotFound
from app.services.skill_service import SkillService, clean_skill_name


@pytest.fixture
def skills(db) -> SkillService:
    return SkillService(db)


def test_clean_skill_name():
    assert clean_skill_name("  FastAPI ") == "FastAPI"
    with pytest.raises(InvalidInput):
        clean_skill_name("   ")


def test_upsert_trims_and_deduplicates(skills):
    first = skills.upsert(" Python ", category="language")
    second = skills.upsert("Python")

    assert first["_id"] == second["_id"]
    assert first["name"] == "Python"
    assert skills.collection.count_documents({}) == 1


def test_names_are_case_sensitive(skills):
    skills.upsert("Python")
    skills.upsert("python")

    assert skills.collection.count_documents({}) == 2
    with pytest.raises(DuplicateKeyError):
        skills.collection.insert_one({"name": "Python", "usage_count": 0})


def test_usage_count_follows_profiles(skills, make_user):
    alice, bob = make_user(), make_user()

    skills.add_to_user(alice["_id"], "Go")
    skills.add_to_user(alice["_id"], "Go")
    skill = skills.add_to_user(bob["_id"], "Go")

    assert skill["usage_count"] == 2
    assert skills.users.find_one({"_id": alice["_id"]})["skills"] == ["Go"]

    skill = skills.remove_from_user(alice["_id"], "Go")
    assert skill["usage_count"] == 1
    assert skills.users.find_one({"_id": alice["_id"]})["skills"] == []


def test_remove_missing_skill(skills, make_user):
    user = make_user()
    with pytest.raises(NotFound):
        skills.remove_from_user(user["_id"], "Rust")


def test_add_to_unknown_user(skills):
    with pytest.raises(NotFound):
        skills.add_to_user("64b7f0c2a1b2c3d4e5f60718", "Go")


def test_popular_and_search(skills, make_user):
    for name in ("Django", "Docker", "Kubernetes"):
        skills.upsert(name)
    user = make_user()
    skills.add_to_user(user["_id"], "Docker")

    assert skills.list_popular(limit=1)[0]["name"] == "Docker"
    assert {s["name"] for s in skills.search("d")} == {"Django", "Docker"}
    assert skills.search("k8s") == []


def test_unknown_user_leaves_catalog_untouched(skills):
    with pytest.raises(NotFound):
        skills.add_to_user("64b7f0c2a1b2c3d4e5f60718", "Elixir")
    assert skills.collection.count_documents({"name": "Elixir"}) == 0
