"""Generate dated maintenance script files."""
import logging
import re
from datetime import date
from pathlib import Path
from typing import Optional

from data_migration_pkg.config import get_configuration

logger = logging.getLogger(__name__)

TEMPLATE = '''"""{title}.

Run with:
    data-migration run {path}
"""
from data_migration_pkg import Migration


class {class_name}(Migration):
    def migration_targets(self):
        # Return a scope with find_each() and count(), e.g. a TableScope.
        raise NotImplementedError

    def migrate_record(self, record):
        raise NotImplementedError


if __name__ == "__main__":
    {class_name}.run()
'''


def underscore(name: str) -> str:
    """MyScript / my-script / "my script" -> my_script."""
    name = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name.strip())
    name = re.sub(r"[^0-9A-Za-z]+", "_", name)
    return name.strip("_").lower()


def camelize(file_name: str) -> str:
    return "".join(part.capitalize() for part in file_name.split("_") if part)


def generate_maintenance_script(name: str, directory: Optional[str] = None,
                                today: Optional[date] = None) -> Path:
    """Write <directory>/<YYYYMMDD>_<name>.py and return its path."""
    file_name = underscore(name)
    if not file_name:
        raise ValueError(f"Invalid script name: {name!r}")
    if file_name[0].isdigit():
        raise ValueError(f"Script name must not start with a digit: {name!r}")

    directory = Path(directory or get_configuration().maintenance_script_directory)
    path = directory / f"{(today or date.today()).strftime('%Y%m%d')}_{file_name}.py"
    if path.exists():
        raise FileExistsError(f"{path} already exists")

    class_name = camelize(file_name)
    directory.mkdir(parents=True, exist_ok=True)
    path.write_text(
        TEMPLATE.format(title=file_name.replace("_", " ").capitalize(), path=path, class_name=class_name),
        encoding="utf-8",
    )
    logger.info(f"Created maintenance script: {path}")
    return path
