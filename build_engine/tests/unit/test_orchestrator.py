"""Unit tests for build_engine.orchestrator.incremental.

The VCS and project parser are replaced by in-memory fakes; snapshots go
through a real filesystem store under ``tmp_path``.
"""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from build_engine.git.git_client import GitClientError
from build_engine.models.build import (
    BuildConfiguration,
    BuildParameters,
    FileSystemStorage,
)
from build_engine.models.project import Project, ProjectStructure
from build_engine.orchestrator import (
    IncrementalBuilder,
    collect_output_files,
    get_incremental_build,
    output_folders,
)
from build_engine.storage import FileSystemSnapshotStore, SnapshotNotFoundError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _FakeVcs:
    def __init__(self, commits: list[str], diffs: dict[tuple[str, str], set[str]] | None = None) -> None:
        self.commits = commits
        self.diffs = diffs or {}
        self.diff_calls: list[tuple[str, str]] = []
        self.max_requested: int | None = None

    def list_recent_commits(self, root: Path, max_count: int) -> list[str]:
        self.max_requested = max_count
        return self.commits[:max_count]

    def diff_files(self, root: Path, from_commit: str, to_commit: str) -> set[str]:
        self.diff_calls.append((from_commit, to_commit))
        return self.diffs.get((from_commit, to_commit), set())


def _project(name: str, deps: list[str] | None = None) -> Project:
    return Project(
        name=name,
        folder=f"src/{name}",
        target_framework="net8.0",
        dependencies=frozenset(deps or []),
        project_file=f"src/{name}/{name}.csproj",
    )


def _structure(root: Path, *projects: Project) -> ProjectStructure:
    return ProjectStructure(root_folder=root, projects={p.name: p for p in projects})


def _write_outputs(root: Path, project: Project, content: bytes, configuration: str = "Release") -> None:
    for kind in ("bin", "obj"):
        folder = root / project.folder / kind / configuration / project.target_framework
        folder.mkdir(parents=True, exist_ok=True)
        (folder / f"{project.name}.{kind}.dll").write_bytes(content)


def _builder(
    root: Path,
    structure: ProjectStructure,
    vcs: _FakeVcs,
    store: FileSystemSnapshotStore,
    max_commits: int = 20,
) -> IncrementalBuilder:
    parameters = BuildParameters(
        repository=root,
        storage=FileSystemStorage(path=store.root),
        max_commits_check=max_commits,
    )
    return IncrementalBuilder(
        parameters,
        store=store,
        source_control=vcs,
        structure_loader=lambda _root: structure,
    )


def _seed_snapshot(store: FileSystemSnapshotStore, tmp_path: Path, commit_id: str, entries: dict[str, bytes]) -> None:
    blob = tmp_path / f"seed-{commit_id}.zip"
    with zipfile.ZipFile(blob, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    store.store(commit_id, blob)


def _names(projects) -> list[str]:
    return [p.name for p in projects]


@pytest.fixture()
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    return root


@pytest.fixture()
def store(tmp_path: Path) -> FileSystemSnapshotStore:
    return FileSystemSnapshotStore(tmp_path / "snapshots")


# ---------------------------------------------------------------------------
# plan
# ---------------------------------------------------------------------------


class TestPlan:
    def test_change_in_dependency(self, tmp_path, repo, store):
        structure = _structure(repo, _project("A"), _project("B", ["A"]), _project("C"))
        _seed_snapshot(store, tmp_path, "c2", {})
        vcs = _FakeVcs(["c1", "c2", "c3"], {("c1", "c2"): {"src/A/Program.cs"}})

        info = _builder(repo, structure, vcs, store).plan()

        assert info.id == "c1"
        assert info.diff_id == "c2"
        assert _names(info.impacted_projects) == ["A", "B"]
        assert _names(info.not_impacted_projects) == ["C"]
        assert vcs.diff_calls == [("c1", "c2")]

    def test_no_snapshot_means_full_build(self, repo, store):
        structure = _structure(repo, _project("A"), _project("B", ["A"]), _project("C"))
        vcs = _FakeVcs([f"c{i}" for i in range(1, 30)])

        info = _builder(repo, structure, vcs, store).plan()

        assert vcs.max_requested == 20
        assert info.diff_id is None
        assert info.is_full_build
        assert _names(info.impacted_projects) == ["A", "B", "C"]
        assert info.not_impacted_projects == []
        assert vcs.diff_calls == []

    def test_snapshot_of_current_commit_is_ignored(self, tmp_path, repo, store):
        structure = _structure(repo, _project("A"))
        _seed_snapshot(store, tmp_path, "c1", {})
        info = _builder(repo, structure, _FakeVcs(["c1", "c2"]), store).plan()
        assert info.diff_id is None

    def test_snapshot_beyond_history_window_not_found(self, tmp_path, repo, store):
        structure = _structure(repo, _project("A"))
        _seed_snapshot(store, tmp_path, "c5", {})
        vcs = _FakeVcs(["c1", "c2", "c3", "c4", "c5"])
        info = _builder(repo, structure, vcs, store, max_commits=4).plan()
        assert info.diff_id is None

    def test_empty_diff_builds_nothing(self, tmp_path, repo, store):
        structure = _structure(repo, _project("A"), _project("B"))
        _seed_snapshot(store, tmp_path, "c2", {})
        info = _builder(repo, structure, _FakeVcs(["c1", "c2"]), store).plan()
        assert info.diff_id == "c2"
        assert info.impacted_projects == []
        assert _names(info.not_impacted_projects) == ["A", "B"]

    def test_nearest_snapshot_and_restore(self, tmp_path, repo, store):
        """Snapshot three commits back; only D changed; D's stale outputs are not restored."""
        projects = [_project("A"), _project("B", ["A"]), _project("C"), _project("D")]
        structure = _structure(repo, *projects)
        _seed_snapshot(
            store,
            tmp_path,
            "c4",
            {
                "src/A/bin/Release/net8.0/A.dll": b"A-old",
                "src/B/bin/Release/net8.0/B.dll": b"B-old",
                "src/C/bin/Release/net8.0/C.dll": b"C-old",
                "src/D/bin/Release/net8.0/D.dll": b"D-old",
            },
        )
        _seed_snapshot(store, tmp_path, "c6", {})
        vcs = _FakeVcs(["c1", "c2", "c3", "c4", "c5", "c6"], {("c1", "c4"): {"src/D/Service.cs"}})

        info = _builder(repo, structure, vcs, store).plan()

        assert info.diff_id == "c4"
        assert _names(info.impacted_projects) == ["D"]
        assert _names(info.not_impacted_projects) == ["A", "B", "C"]
        for name in ("A", "B", "C"):
            assert (repo / f"src/{name}/bin/Release/net8.0/{name}.dll").read_bytes() == f"{name}-old".encode()
        assert not (repo / "src/D/bin/Release/net8.0/D.dll").exists()

    def test_no_restore(self, tmp_path, repo, store):
        structure = _structure(repo, _project("A"))
        _seed_snapshot(store, tmp_path, "c2", {"src/A/bin/Release/net8.0/A.dll": b"x"})
        _builder(repo, structure, _FakeVcs(["c1", "c2"]), store).plan(restore=False)
        assert not (repo / "src/A/bin").exists()

    def test_cycle_reported_as_warning(self, repo, store):
        structure = _structure(repo, _project("A", ["B"]), _project("B", ["A"]))
        info = _builder(repo, structure, _FakeVcs(["c1"]), store).plan()
        assert len(info.warnings) == 1
        assert "A -> B -> A" in info.warnings[0]

    def test_empty_history_is_an_error(self, repo, store):
        structure = _structure(repo, _project("A"))
        with pytest.raises(GitClientError):
            _builder(repo, structure, _FakeVcs([]), store).plan()


# ---------------------------------------------------------------------------
# restore_snapshot
# ---------------------------------------------------------------------------


class TestRestoreSnapshot:
    def test_nothing_to_restore(self, repo, store):
        structure = _structure(repo, _project("A"))
        builder = _builder(repo, structure, _FakeVcs(["c1"]), store)
        info = builder.plan()
        assert builder.restore_snapshot(info) == []

    def test_missing_snapshot_propagates(self, tmp_path, repo, store):
        structure = _structure(repo, _project("A"))
        _seed_snapshot(store, tmp_path, "c2", {})
        builder = _builder(repo, structure, _FakeVcs(["c1", "c2"]), store)
        info = builder.plan(restore=False)
        store.snapshot_path("c2").unlink()
        with pytest.raises(SnapshotNotFoundError):
            builder.restore_snapshot(info)


# ---------------------------------------------------------------------------
# Output collection and snapshot creation
# ---------------------------------------------------------------------------


class TestCreateSnapshot:
    def test_output_folders(self, repo):
        project = _project("A")
        assert output_folders(project, repo, BuildConfiguration.DEBUG) == [
            repo / "src/A/bin/Debug/net8.0",
            repo / "src/A/obj/Debug/net8.0",
        ]

    def test_collect_only_selected_configuration(self, repo):
        a, b = _project("A"), _project("B")
        structure = _structure(repo, a, b)
        _write_outputs(repo, a, b"a")
        _write_outputs(repo, b, b"b", configuration="Debug")

        files = collect_output_files(structure, BuildConfiguration.RELEASE)

        assert [f.relative_to(repo).as_posix() for f in files] == [
            "src/A/bin/Release/net8.0/A.bin.dll",
            "src/A/obj/Release/net8.0/A.obj.dll",
        ]

    def test_create_then_restore_round_trip(self, tmp_path, repo, store):
        projects = [_project("A"), _project("B", ["A"])]
        structure = _structure(repo, *projects)
        for project in projects:
            _write_outputs(repo, project, project.name.encode() * 3)
        builder = _builder(repo, structure, _FakeVcs(["c1"]), store)

        info = builder.plan()
        location = builder.create_snapshot(info)

        assert location == str(store.snapshot_path("c1"))
        with zipfile.ZipFile(location) as zf:
            assert sorted(zf.namelist()) == [
                "src/A/bin/Release/net8.0/A.bin.dll",
                "src/A/obj/Release/net8.0/A.obj.dll",
                "src/B/bin/Release/net8.0/B.bin.dll",
                "src/B/obj/Release/net8.0/B.obj.dll",
            ]

        clone = tmp_path / "clone"
        clone.mkdir()
        later = _builder(
            clone,
            _structure(clone, *projects),
            _FakeVcs(["c9", "c1"], {("c9", "c1"): {"src/B/x.cs"}}),
            store,
        )
        later_info = later.plan()
        assert later_info.diff_id == "c1"
        assert (clone / "src/A/bin/Release/net8.0/A.bin.dll").read_bytes() == b"AAA"
        assert not (clone / "src/B/bin").exists()

    def test_snapshot_overwrites(self, repo, store):
        a = _project("A")
        structure = _structure(repo, a)
        builder = _builder(repo, structure, _FakeVcs(["c1"]), store)
        info = builder.plan()

        _write_outputs(repo, a, b"first")
        builder.create_snapshot(info)
        _write_outputs(repo, a, b"second")
        builder.create_snapshot(info)

        with zipfile.ZipFile(store.fetch("c1")) as zf:
            assert zf.read("src/A/bin/Release/net8.0/A.bin.dll") == b"second"

    def test_unbuilt_projects_are_skipped(self, repo, store):
        structure = _structure(repo, _project("A"))
        builder = _builder(repo, structure, _FakeVcs(["c1"]), store)
        builder.create_snapshot(builder.plan())
        with zipfile.ZipFile(store.fetch("c1")) as zf:
            assert zf.namelist() == []


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_collaborators_resolved_from_parameters(self, tmp_path):
        builder = IncrementalBuilder(BuildParameters(storage=FileSystemStorage(path=tmp_path)))
        assert isinstance(builder.store, FileSystemSnapshotStore)
        assert builder.store.root == tmp_path

    def test_get_incremental_build_applies_overrides(self, tmp_path, monkeypatch: pytest.MonkeyPatch):
        captured: dict[str, BuildParameters] = {}

        def _plan(self, restore=True):
            captured["parameters"] = self.parameters
            return "plan"

        monkeypatch.setattr(IncrementalBuilder, "plan", _plan)
        result = get_incremental_build(
            repository=tmp_path, storage=FileSystemStorage(path=tmp_path), max_commits_check=3
        )
        assert result == "plan"
        assert captured["parameters"].max_commits_check == 3
        assert captured["parameters"].repository == tmp_path
