import pydantic
import pytest

from meshgen.config import Settings
from meshgen.errors import RemoteStatusError, StorageError
from meshgen.services.downloader import Downloader

from .conftest import ARTIFACT_BYTES, ARTIFACT_ID, BASE_URL

URL = f"{BASE_URL}/static/{ARTIFACT_ID}/textured_mesh.glb"


def test_download_writes_file(client, remote, tmp_path):
    destination = tmp_path / "out" / "model.glb"
    Downloader(client, backoff_seconds=0).download(URL, destination)

    assert destination.read_bytes() == ARTIFACT_BYTES
    assert remote.download_attempts == 1
    assert not destination.with_name("model.glb.part").exists()


def test_download_succeeds_on_third_attempt(client, remote, tmp_path):
    remote.download_failures = 2
    destination = tmp_path / "model.glb"

    Downloader(client, backoff_seconds=0).download(URL, destination, max_attempts=3)

    assert remote.download_attempts == 3
    assert destination.read_bytes() == ARTIFACT_BYTES


def test_download_gives_up_after_max_attempts(client, remote, tmp_path):
    remote.download_failures = 4
    destination = tmp_path / "model.glb"

    with pytest.raises(RemoteStatusError):
        Downloader(client, backoff_seconds=0).download(URL, destination, max_attempts=3)

    assert remote.download_attempts == 3
    assert not destination.exists()
    assert not destination.with_name("model.glb.part").exists()


def test_unwritable_destination_is_a_storage_error(client, remote, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    with pytest.raises(StorageError):
        Downloader(client, backoff_seconds=0).download(URL, blocker / "model.glb", max_attempts=2)
    assert remote.download_attempts == 0


def test_download_waits_between_attempts(client, remote, tmp_path):
    sleeps = []
    remote.download_failures = 2

    Downloader(client, backoff_seconds=1.0, sleep=sleeps.append).download(URL, tmp_path / "model.glb")

    assert sleeps == [1.0, 1.0]
    assert remote.download_attempts == 3


def test_no_wait_after_final_attempt(client, remote, tmp_path):
    sleeps = []
    remote.download_failures = 5

    with pytest.raises(RemoteStatusError):
        Downloader(client, backoff_seconds=1.0, sleep=sleeps.append).download(
            URL, tmp_path / "model.glb", max_attempts=3
        )
    assert sleeps == [1.0, 1.0]


@pytest.mark.parametrize("attempts", [0, -1])
def test_zero_attempts_is_rejected(client, remote, tmp_path, attempts):
    with pytest.raises(ValueError):
        Downloader(client).download(URL, tmp_path / "model.glb", max_attempts=attempts)
    with pytest.raises(ValueError):
        Downloader(client, max_attempts=attempts)
    assert remote.download_attempts == 0


def test_settings_reject_zero_download_attempts():
    with pytest.raises(pydantic.ValidationError):
        Settings(DOWNLOAD_MAX_ATTEMPTS=0)
