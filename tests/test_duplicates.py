from __future__ import annotations

from dropbox_storybook.duplicates import duplicate_hash, find_duplicate_groups
from dropbox_storybook.models import Photo


def _photo(name: str, size: int, path: str | None = None) -> Photo:
    return Photo(id=f"id:{name}", name=name, path=path or f"/Photos/{name}", url="u", thumbnail_url="t", size=size)


def test_hash_uses_size_and_last_twenty_lowercased_characters() -> None:
    assert duplicate_hash(100, "IMG_0001.JPG") == "100-img_0001.jpg"
    assert duplicate_hash(5, "Summer-Holiday-At-The-Lake-01.jpg") == "5-y-at-the-lake-01.jpg"


def test_groups_only_collisions_in_first_seen_order() -> None:
    photos = [
        _photo("IMG_1.jpg", 10),
        _photo("IMG_2.jpg", 20),
        _photo("img_1.JPG", 10, path="/Backup/img_1.JPG"),
        _photo("IMG_2.jpg", 21),
        _photo("IMG_2.jpg", 20, path="/Backup/IMG_2.jpg"),
    ]

    groups = find_duplicate_groups(photos)

    assert [g.id for g in groups] == ["group-1", "group-2"]
    assert groups[0].hash == "10-img_1.jpg"
    assert [p.path for p in groups[0].photos] == ["/Photos/IMG_1.jpg", "/Backup/img_1.JPG"]
    assert [p.path for p in groups[1].photos] == ["/Photos/IMG_2.jpg", "/Backup/IMG_2.jpg"]


def test_no_duplicates() -> None:
    assert find_duplicate_groups([_photo("a.jpg", 1), _photo("b.jpg", 1)]) == []
