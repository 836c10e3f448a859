"""Tests for person resolution and contact CRUD."""

import pytest

from sift.common.errors import DuplicatePersonError, InvalidRequestError, PersonNotFoundError
from sift.common.schemas import DetectedPerson, Person, Proposal
from sift.ingest.people import PeopleService, PersonInput, PersonResolver, find_grade, mentioned_in

USER = "user-1"


def _proposal(people, **overrides) -> Proposal:
    data = {"title": "Notice", "confidence_score": 0.8, "people": people}
    data.update(overrides)
    return Proposal(**data)


class TestFindGrade:
    @pytest.mark.parametrize("text,expected", [
        ("All 3rd grade parents", "3"),
        ("Grade 10 exams", "10"),
        ("Ausflug der 4. Klasse", "4"),
        ("No grade mentioned", None),
        ("", None),
    ])
    def test_find_grade(self, text, expected):
        assert find_grade(text) == expected


class TestMentionedIn:
    def test_case_insensitive(self, store):
        mia = store.create_person(USER, "Mia")
        leo = store.create_person(USER, "Leo")

        assert mentioned_in([mia, leo], "Bring MIA's swim kit") == [mia.id]
        assert mentioned_in([mia, leo], None) == []


class TestPersonResolver:
    def test_mapped_id_is_used(self, store):
        mia = store.create_person(USER, "Mia")
        resolver = PersonResolver(store)

        people = resolver.resolve(USER, _proposal([DetectedPerson(name="Mia S.", person_id=mia.id)]))

        assert [p.id for p in people] == [mia.id]
        assert len(store.list_people(USER)) == 1

    def test_name_match_merges_attributes(self, store):
        mia = store.create_person(USER, "Mia", metadata={"school": "Hill Primary"})

        people = PersonResolver(store).resolve(
            USER, _proposal([DetectedPerson(name="Mia", relationship="daughter", grade="3")])
        )

        assert [p.id for p in people] == [mia.id]
        merged = store.get_person(USER, mia.id)
        assert merged.relationship == "daughter"
        assert merged.metadata == {"school": "Hill Primary", "grade": "3"}

    def test_new_person_created(self, store):
        people = PersonResolver(store).resolve(
            USER, _proposal([DetectedPerson(name="Coach Dan", category="sports", is_new=True)])
        )

        assert [p.name for p in people] == ["Coach Dan"]
        assert store.find_person_by_name(USER, "Coach Dan").category == "sports"

    def test_unknown_mapped_id_ignored(self, store):
        people = PersonResolver(store).resolve(
            USER, _proposal([DetectedPerson(name="Ghost", person_id="missing")])
        )

        assert people == []
        assert store.list_people(USER) == []

    def test_other_users_person_not_matched(self, store):
        theirs = store.create_person("user-2", "Mia")

        people = PersonResolver(store).resolve(
            USER, _proposal([DetectedPerson(name="Mia", person_id=theirs.id, is_new=True)])
        )

        assert len(people) == 1
        assert people[0].id != theirs.id
        assert people[0].user_id == USER

    def test_school_notice_matches_children_by_grade(self, store):
        mia = store.create_person(USER, "Mia", relationship="daughter", metadata={"grade": "3rd"})
        store.create_person(USER, "Leo", relationship="son", metadata={"grade": "5"})
        store.create_person(USER, "Tom", relationship="friend", metadata={"grade": "3"})

        people = PersonResolver(store).resolve(
            USER, _proposal([], title="3rd grade museum trip", category="school")
        )

        assert [p.id for p in people] == [mia.id]

    def test_duplicates_collapse(self, store):
        mia = store.create_person(USER, "Mia")

        people = PersonResolver(store).resolve(
            USER, _proposal([DetectedPerson(name="Mia"), DetectedPerson(name="x", person_id=mia.id)])
        )

        assert [p.id for p in people] == [mia.id]


class TestPeopleService:
    def test_save_creates_by_name(self, store):
        person = PeopleService(store).save(USER, PersonInput(name="  Grandma ", relationship="grandparent"))

        assert isinstance(person, Person)
        assert person.name == "Grandma"

    def test_save_by_name_updates_existing(self, store):
        service = PeopleService(store)
        first = service.save(USER, PersonInput(name="Mia", notes="allergic to nuts"))

        second = service.save(USER, PersonInput(name="Mia", is_important=True))

        assert second.id == first.id
        assert second.is_important is True
        assert second.notes == "allergic to nuts"

    def test_save_by_id_renames(self, store):
        mia = store.create_person(USER, "Mia")

        renamed = PeopleService(store).save(USER, PersonInput(id=mia.id, name="Amelia", pinned_order=1))

        assert renamed.name == "Amelia"
        assert renamed.pinned_order == 1

    def test_rename_collision(self, store):
        mia = store.create_person(USER, "Mia")
        store.create_person(USER, "Leo")

        with pytest.raises(DuplicatePersonError):
            PeopleService(store).save(USER, PersonInput(id=mia.id, name="Leo"))

    def test_name_required(self, store):
        with pytest.raises(InvalidRequestError):
            PeopleService(store).save(USER, PersonInput(relationship="friend"))

    def test_other_users_person(self, store):
        theirs = store.create_person("user-2", "Zoe")
        service = PeopleService(store)

        with pytest.raises(PersonNotFoundError):
            service.save(USER, PersonInput(id=theirs.id, name="Zed"))
        with pytest.raises(PersonNotFoundError):
            service.delete(USER, theirs.id)
        assert store.get_person("user-2", theirs.id).name == "Zoe"
