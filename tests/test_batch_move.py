from __future__ import annotations

import pytest

from dropbox_storybook.batch_move import batch_move_files, destination_path
from dropbox_storybook.errors import FolderProvisioningError
from dropbox_storybook.token_refresh import RefreshingCaller


def _caller(dropbox_client, token: str = "good") -> RefreshingCaller:
    return RefreshingCaller("monica", token, "refresh-1", refresher=dropbox_client.refresh_access_token)


def test_destination_path_uses_basename() -> None:
    assert destination_path("/Duplicates", "/Photos/2024/a.jpg") == "/Duplicates/a.jpg"
    assert destination_path("/Duplicates/", "/a.jpg") == "/Duplicates/a.jpg"


@pytest.mark.asyncio
async def test_creates_missing_folder_and_moves_everything(fake_dropbox, dropbox_client) -> None:
    paths = ["/Photos/a.jpg", "/Photos/sub/b.jpg", "/Photos/c.jpg"]

    result = await batch_move_files(dropbox_client, _caller(dropbox_client), paths, "/Duplicates")

    assert result.folder_created is True
    assert result.success == paths
    assert result.failed == []
    assert len(result.success) + len(result.failed) == len(paths)
    assert fake_dropbox.moves == [
        ("/Photos/a.jpg", "/Duplicates/a.jpg"),
        ("/Photos/sub/b.jpg", "/Duplicates/b.jpg"),
        ("/Photos/c.jpg", "/Duplicates/c.jpg"),
    ]


@pytest.mark.asyncio
async def test_existing_folder_is_not_recreated(fake_dropbox, dropbox_client) -> None:
    fake_dropbox.folders.add("/Duplicates")
    result = await batch_move_files(dropbox_client, _caller(dropbox_client), ["/Photos/a.jpg"], "/Duplicates")

    assert result.folder_created is False
    assert fake_dropbox.count("files/create_folder_v2") == 0
    assert result.to_wire() == {"success": ["/Photos/a.jpg"], "failed": [], "folderCreated": False}


@pytest.mark.asyncio
async def test_one_failing_move_does_not_stop_the_rest(fake_dropbox, dropbox_client) -> None:
    paths = ["/Photos/a.jpg", "/Photos/b.jpg", "/Photos/c.jpg", "/Photos/d.jpg"]
    fake_dropbox.failing_moves.add("/Photos/b.jpg")

    result = await batch_move_files(dropbox_client, _caller(dropbox_client), paths, "/Duplicates")

    assert len(result.failed) == 1
    assert result.failed[0].path == "/Photos/b.jpg"
    assert "409" in result.failed[0].error
    assert result.success == ["/Photos/a.jpg", "/Photos/c.jpg", "/Photos/d.jpg"]


@pytest.mark.asyncio
async def test_folder_provisioning_failure_aborts_batch(fake_dropbox, dropbox_client) -> None:
    fake_dropbox.unprovisionable.add("/Locked")

    with pytest.raises(FolderProvisioningError):
        await batch_move_files(dropbox_client, _caller(dropbox_client), ["/Photos/a.jpg"], "/Locked")

    assert fake_dropbox.count("files/move_v2") == 0


@pytest.mark.asyncio
async def test_moves_are_sequential(fake_dropbox, dropbox_client, monkeypatch) -> None:
    active = 0
    overlaps = 0
    original = dropbox_client.move_file

    async def tracked_move(token, from_path, to_path):
        nonlocal active, overlaps
        active += 1
        overlaps = max(overlaps, active)
        try:
            return await original(token, from_path, to_path)
        finally:
            active -= 1

    monkeypatch.setattr(dropbox_client, "move_file", tracked_move)
    await batch_move_files(
        dropbox_client, _caller(dropbox_client), [f"/Photos/{i}.jpg" for i in range(5)], "/Duplicates"
    )
    assert overlaps == 1


@pytest.mark.asyncio
async def test_expired_token_is_refreshed_during_batch(fake_dropbox, dropbox_client) -> None:
    call = _caller(dropbox_client, token="expired")

    result = await batch_move_files(dropbox_client, call, ["/Photos/a.jpg"], "/Duplicates")

    assert result.success == ["/Photos/a.jpg"]
    assert call.token_refreshed is True
