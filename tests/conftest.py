from __future__ import annotations

import sys
import textwrap
from dataclasses import dataclass
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@dataclass(slots=True)
class SampleProject:
    """Fixture payload describing the synthetic project under analysis."""

    root: Path

    def write(self, relative: str, content: str) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip(), encoding="utf-8")
        return path


@pytest.fixture()
def sample_project(tmp_path: Path) -> SampleProject:
    """Create a small mixed Python/TypeScript/markdown project."""

    project = SampleProject(root=tmp_path / "sample-app")
    project.root.mkdir()
    project.write(
        "src/users.py",
        """
        from __future__ import annotations


        class UserService:
            def __init__(self) -> None:
                self.users = {}

            def create_user(self, name: str) -> dict:
                # TODO: validate the user name before saving
                user = {"name": name}
                self.users[name] = user
                return user


        def delete_user(name: str) -> None:
            # FIXME: handle missing users
            return None
        """,
    )
    project.write(
        "src/payments.ts",
        """
        export function chargeCard(amount: number): boolean {
          // TODO: add retry logic for failed charges
          return false;
        }
        """,
    )
    project.write(
        "docs/ROADMAP.md",
        """
        # Roadmap

        ## Priority 1
        - [ ] Implement password reset flow
        - [x] Set up CI pipeline

        ## Later
        - **Docs**: write the deployment guide
        """,
    )
    project.write("node_modules/lib/index.js", "// TODO: vendored code should be ignored\n")
    return project
