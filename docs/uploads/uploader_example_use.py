import asyncio
import sys
from pathlib import Path

from club_uploader.api_client import ServerApi
from club_uploader.errors import UploadError
from club_uploader.local_state import LocalStateStore, UploadStateRepository
from club_uploader.quota import QuotaTracker
from club_uploader.resume import ResumeCoordinator
from club_uploader.settings import load_settings
from club_uploader.uploader import ChunkedUploader


# ------------------------ Utilities ------------------------ #
def progress_bar(progress):
    bar_length = 20
    filled_length = int(bar_length * progress.percentage / 100)
    bar = "#" * filled_length + "-" * (bar_length - filled_length)
    speed_mb = progress.speed / 1024 / 1024
    sys.stdout.write(f"\rUploading: \t |{bar}| {progress.percentage:.0f}% ({speed_mb:.1f} MB/s)")
    if progress.is_stalled:
        sys.stdout.write(" [stalled]")
    sys.stdout.flush()


def pick_session(sessions, file_path: Path):
    """Return the pending session started for this file, if any."""
    for session in sessions:
        if session["fileName"] == file_path.name and session["fileSize"] == file_path.stat().st_size:
            return session
    return None


# ------------------------ Main ------------------------ #
async def main(file_path: Path, title: str):
    settings = load_settings()
    store = LocalStateStore(settings.state_dir)
    states = UploadStateRepository(store)
    api = ServerApi.from_settings(settings)
    uploader = ChunkedUploader(
        api, quota=QuotaTracker(store), states=states, on_progress=progress_bar
    )

    try:
        sessions = await ResumeCoordinator(api, states).check_pending_sessions()
        session = pick_session(sessions, file_path)
        with file_path.open("rb") as fh:
            if session is not None:
                print(f"Resuming session {session['sessionId']} at {session['progress']}%")
                video_id = await uploader.resume_upload(
                    session["sessionId"], fh, file_path.name, file_path.stat().st_size
                )
            else:
                video_id = await uploader.upload(
                    fh,
                    file_path.name,
                    file_path.stat().st_size,
                    {"title": title, "description": "", "privacy": "unlisted"},
                )
        print(f"\nUpload finished: {video_id}")
    except UploadError as exc:
        print(f"\nUpload failed ({exc.error_type.value}): {exc.message}")
        if exc.session_id:
            print(f"Session {exc.session_id} can be resumed later.")
    finally:
        await api.aclose()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: uploader_example_use.py <video file> [title]")
        sys.exit(1)
    path = Path(sys.argv[1])
    asyncio.run(main(path, sys.argv[2] if len(sys.argv) > 2 else path.stem))
