"""VisibilityService: public gallery, share links, owner settings, moderation."""
from datetime import datetime, timedelta, timezone

import pytest

from animeleak.models.image import Image
from animeleak.services.audit.service import AuditService
from animeleak.services.errors import NotAuthorized, NotFound, ValidationError
from animeleak.visibility.service import VisibilityService

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _generated(db, store, user_id="u1", featured_minutes=None, **kwargs):
    original = Image(body=store.store(b"o", "image/jpeg"), user_id=user_id, is_generated=False, generation_status="completed")
    db.add(original)
    db.flush()
    image = Image(
        body=store.store(b"g", "image/png"),
        user_id=user_id,
        is_generated=True,
        original_id=original.id,
        **kwargs,
    )
    if featured_minutes is not None:
        image.is_featured = True
        image.featured_at = BASE_TIME + timedelta(minutes=featured_minutes)
    db.add(image)
    db.commit()
    return image


@pytest.fixture
def visibility(db, store):
    return VisibilityService(db, store=store)


class TestPublicGallery:
    def test_lists_featured_newest_first_without_owner(self, db, store, visibility):
        older = _generated(db, store, featured_minutes=1)
        newer = _generated(db, store, featured_minutes=2)
        _generated(db, store)  # not featured

        result = visibility.get_public_gallery()

        assert [i["id"] for i in result["page"]] == [newer.id, older.id]
        assert result["is_done"] is True
        assert "user_id" not in result["page"][0]

    def test_excludes_moderated_items(self, db, store, visibility):
        hidden = _generated(db, store, featured_minutes=1)
        shown = _generated(db, store, featured_minutes=2)
        visibility.disable_featured_image("admin-1", hidden.id, "nsfw")

        ids = [i["id"] for i in visibility.get_public_gallery()["page"]]
        assert ids == [shown.id]

        visibility.enable_featured_image("admin-1", hidden.id)
        ids = [i["id"] for i in visibility.get_public_gallery()["page"]]
        assert ids == [shown.id, hidden.id]

    def test_paginates(self, db, store, visibility):
        for minute in range(3):
            _generated(db, store, featured_minutes=minute)
        first = visibility.get_public_gallery(limit=2)
        assert len(first["page"]) == 2
        assert first["continue_cursor"] == "2"
        rest = visibility.get_public_gallery(cursor=first["continue_cursor"], limit=2)
        assert len(rest["page"]) == 1
        assert rest["is_done"] is True


class TestSharedImage:
    def test_resolves_by_default(self, db, store, visibility):
        image = _generated(db, store)
        shared = visibility.get_shared_image(image.id)
        assert shared["id"] == image.id
        assert shared["url"].startswith("http://testserver/files/")

    def test_expired_disabled_and_unknown_look_the_same(self, db, store, visibility):
        expired = _generated(db, store, share_expires_at=datetime.now(timezone.utc) - timedelta(hours=1))
        disabled = _generated(db, store, sharing_enabled=False)
        assert visibility.get_shared_image(expired.id) is None
        assert visibility.get_shared_image(disabled.id) is None
        assert visibility.get_shared_image("never-existed") is None

    def test_moderation_keeps_direct_link(self, db, store, visibility):
        image = _generated(db, store, featured_minutes=1)
        visibility.disable_featured_image("admin-1", image.id, "spam")
        assert visibility.get_shared_image(image.id) is not None

    def test_missing_blob_hides_share(self, db, store, visibility):
        image = _generated(db, store)
        store.delete(image.body)
        assert visibility.get_shared_image(image.id) is None


class TestOwnerSettings:
    def test_share_expiry_set_and_cleared(self, db, store, visibility):
        image = _generated(db, store)

        updated = visibility.update_share_settings("u1", image.id, True, expiration_hours=24)
        assert updated.share_expires_at is not None

        updated = visibility.update_share_settings("u1", image.id, False, expiration_hours=0)
        assert updated.sharing_enabled is False
        assert updated.share_expires_at is None
        assert visibility.get_shared_image(image.id) is None

    def test_share_settings_owner_only(self, db, store, visibility):
        image = _generated(db, store)
        with pytest.raises(NotAuthorized):
            visibility.update_share_settings("intruder", image.id, False)
        with pytest.raises(NotFound):
            visibility.update_share_settings("u1", "missing", False)
        with pytest.raises(ValidationError):
            visibility.update_share_settings("u1", image.id, True, expiration_hours=-1)

    def test_feature_and_unfeature(self, db, store, visibility):
        image = _generated(db, store)
        featured = visibility.update_featured_status("u1", image.id, True)
        assert featured.is_featured is True
        assert featured.featured_at is not None

        unfeatured = visibility.update_featured_status("u1", image.id, False)
        assert unfeatured.is_featured is False
        assert unfeatured.featured_at is None

    def test_originals_cannot_be_featured(self, db, store, visibility):
        image = _generated(db, store)
        with pytest.raises(ValidationError):
            visibility.update_featured_status("u1", image.original_id, True)

    def test_moderated_image_cannot_be_refeatured(self, db, store, visibility):
        image = _generated(db, store, featured_minutes=1)
        visibility.disable_featured_image("admin-1", image.id, "nsfw")
        visibility.update_featured_status("u1", image.id, False)
        with pytest.raises(NotAuthorized):
            visibility.update_featured_status("u1", image.id, True)


class TestModeration:
    def test_disable_and_enable_are_audited(self, db, store, visibility):
        image = _generated(db, store, featured_minutes=1)

        disabled = visibility.disable_featured_image("admin-1", image.id, "nsfw")
        assert disabled.is_disabled_by_admin is True
        assert disabled.disabled_by_admin_reason == "nsfw"
        assert disabled.disabled_by_admin_at is not None

        enabled = visibility.enable_featured_image("admin-1", image.id)
        assert enabled.is_disabled_by_admin is False
        assert enabled.disabled_by_admin_reason is None

        entries = AuditService(db).entries_for("image", image.id)
        assert sorted(e.action for e in entries) == ["image_disabled", "image_enabled"]
        assert {e.actor_id for e in entries} == {"admin-1"}

    def test_admin_listing_includes_moderated_with_owner(self, db, store, visibility):
        image = _generated(db, store, featured_minutes=1)
        visibility.disable_featured_image("admin-1", image.id, "nsfw")

        page = visibility.get_admin_featured_images()["page"]

        assert page[0]["id"] == image.id
        assert page[0]["user_id"] == "u1"
        assert page[0]["is_disabled_by_admin"] is True
        assert page[0]["disabled_by_admin_reason"] == "nsfw"

    def test_unknown_image(self, db, visibility):
        with pytest.raises(NotFound):
            visibility.disable_featured_image("admin-1", "missing", "x")
