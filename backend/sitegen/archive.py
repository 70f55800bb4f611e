import io
import os
import zipfile

from sitegen.preview import SKIP_DIRS


def build_project_zip(project_path: str, project_dir: str) -> bytes:
    """Zip the project under a top-level folder named project_dir."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        for root, dirs, files in os.walk(project_path):
            dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS)
            for name in sorted(files):
                full_path = os.path.join(root, name)
                rel = os.path.relpath(full_path, project_path).replace(os.sep, "/")
                zf.write(full_path, f"{project_dir}/{rel}")
    return buffer.getvalue()
