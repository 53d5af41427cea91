"""Tests for branch policy, run configuration and build-file loading."""

import textwrap

import pytest

from fleetbuild.config import BranchPolicy, BuildFile, ProjectDesc, RunConfig, split_branch_list
from fleetbuild.dsl import library, service, ws
from fleetbuild.errors import ConfigError
from fleetbuild.git_facts.git import GitSvnRepository
from fleetbuild.model import ALL_PHASES, Coordinate, Phase, Status, SyncMode
from fleetbuild.project import ArchiveDeploy, NoDeploy
from fleetbuild.workspace import create_projects, find_build_file, load_build_file, open_repositories


class TestBranchPolicy:
    def test_classify_priority(self):
        policy = BranchPolicy.of(pull=["master"], rebase=["feature"], local=["spike"])
        assert policy.classify("master") is SyncMode.PULL
        assert policy.classify("feature") is SyncMode.REBASE
        assert policy.classify("spike") is SyncMode.LOCAL
        assert policy.classify("wip") is None

    def test_basis_branch_counts_as_pull(self):
        policy = BranchPolicy.of(pull=["master"], rebase=["develop"])
        assert policy.classify("develop", basis_branch="develop") is SyncMode.PULL
        assert policy.is_pull("develop", "develop")
        assert not policy.is_pull("develop")

    def test_overlap_rejected(self):
        with pytest.raises(ConfigError, match=r"both pull and rebase branches: \['develop'\]"):
            BranchPolicy.of(pull=["master", "develop"], rebase=["develop"])
        with pytest.raises(ConfigError, match="both rebase and local"):
            BranchPolicy.of(rebase=["x"], local=["x"])

    def test_defaults(self):
        assert BranchPolicy() == BranchPolicy.of(pull=["master"])


class TestProjectDesc:
    def test_service_defaults(self):
        d = ProjectDesc(service="orders-service")
        assert d.is_service
        assert d.archive_name == "orders-service.war"
        assert d.service_name == "orders"
        assert d.should_restart

    @pytest.mark.parametrize("value,expected", [
        ("true", True), ("YES", True), ("no", False), ("false", False), (False, False), (True, True),
    ])
    def test_restart(self, value, expected):
        assert ProjectDesc(service="s", restart=value).should_restart is expected

    def test_wlp_override(self):
        assert ProjectDesc(service="search", wlp="search-app").service_name == "search-app"

    def test_sub_project_names(self):
        d = ProjectDesc(library="util", repo="platform")
        assert d.repository == "platform"
        assert d.display_name == "platform/util"
        assert ProjectDesc(library="core").display_name == "core"

    def test_exactly_one_kind(self):
        with pytest.raises(ValueError):
            ProjectDesc()
        with pytest.raises(ValueError):
            ProjectDesc(library="a", service="b")

    def test_library_cannot_deploy(self):
        with pytest.raises(ValueError):
            ProjectDesc(library="a", archive="a.jar")

    def test_unknown_scm(self):
        with pytest.raises(ValueError):
            ProjectDesc(library="a", scm="hg")

    def test_unknown_field(self):
        with pytest.raises(ValueError):
            ProjectDesc(library="a", colour="red")


class TestBuildFileSchema:
    def test_bare_names_are_libraries(self):
        bf = BuildFile.model_validate({"projects": ["a", {"service": "b-service"}]})
        assert [p.name for p in bf.projects] == ["a", "b-service"]
        assert not bf.projects[0].is_service

    def test_dsl_helpers(self):
        bf = ws("core", library("util", repo="platform"), service("web"), project_dir="/src")
        assert bf.config.project_dir == "/src"
        assert [p.display_name for p in bf.projects] == ["core", "platform/util", "web"]
        assert bf.projects[2].is_service


class TestRunConfig:
    def test_defaults(self, tmp_path):
        cfg = RunConfig.resolve(BuildFile(), project_dir=tmp_path)
        assert cfg.project_dir == tmp_path.resolve()
        assert cfg.branches == BranchPolicy.of(pull=["master"])
        assert cfg.basis_branch == "master"
        assert cfg.phases == list(ALL_PHASES)
        assert cfg.workers == 1

    def test_build_file_then_command_line(self, tmp_path):
        bf = ws(project_dir=str(tmp_path), pull_branches=["develop"], rebase_branches=["f"],
                basis_branch="develop")
        cfg = RunConfig.resolve(bf)
        assert cfg.branches.pull == {"develop"}
        assert cfg.basis_branch == "develop"

        cfg = RunConfig.resolve(bf, pull_branches=["main"], basis_branch="main", phases=[Phase.BUILD])
        assert cfg.branches.pull == {"main"}
        assert cfg.branches.rebase == {"f"}
        assert cfg.basis_branch == "main"
        assert cfg.phases == [Phase.BUILD]

    def test_empty_list_overrides_build_file(self, tmp_path):
        bf = ws(project_dir=str(tmp_path), rebase_branches=["f"])
        assert RunConfig.resolve(bf, rebase_branches=[]).branches.rebase == set()

    def test_missing_project_dir(self, tmp_path):
        with pytest.raises(ConfigError, match="No project directory"):
            RunConfig.resolve(BuildFile())
        with pytest.raises(ConfigError, match="Unable to locate"):
            RunConfig.resolve(BuildFile(), project_dir=tmp_path / "nope")

    def test_overlap_from_mixed_sources(self, tmp_path):
        bf = ws(project_dir=str(tmp_path), local_branches=["master"])
        with pytest.raises(ConfigError):
            RunConfig.resolve(bf)

    def test_no_phases(self, tmp_path):
        with pytest.raises(ConfigError):
            RunConfig.resolve(BuildFile(), project_dir=tmp_path, phases=[])

    def test_workers_must_be_positive(self, tmp_path):
        with pytest.raises(ConfigError):
            RunConfig.resolve(BuildFile(), project_dir=tmp_path, workers=0)


def test_split_branch_list():
    assert split_branch_list("master, develop,,") == ["master", "develop"]
    assert split_branch_list("") == []
    assert split_branch_list(None) is None


# ---------------------------------------------------------------------
# Build-file loading
# ---------------------------------------------------------------------

class TestLoadBuildFile:
    def test_workspace_function(self, tmp_path):
        path = tmp_path / "fleetbuild_workspace.py"
        path.write_text(textwrap.dedent("""
            from fleetbuild.dsl import ws, service

            def workspace():
                return ws("core", service("web"), project_dir="/src")
        """))
        bf = load_build_file(path)
        assert [p.name for p in bf.projects] == ["core", "web"]

    def test_workspace_constant_dict(self, tmp_path):
        path = tmp_path / "ws.py"
        path.write_text('WORKSPACE = {"config": {"basis_branch": "develop"}, "projects": ["a"]}\n')
        bf = load_build_file(path)
        assert bf.config.basis_branch == "develop"

    def test_invalid_contents(self, tmp_path):
        path = tmp_path / "ws.py"
        path.write_text('WORKSPACE = {"projects": [{"library": "a", "service": "b"}]}\n')
        with pytest.raises(ConfigError, match="Invalid build file"):
            load_build_file(path)

    def test_invalid_project_from_workspace_function(self, tmp_path):
        path = tmp_path / "ws.py"
        path.write_text(textwrap.dedent("""
            from fleetbuild.dsl import ws, service

            def workspace():
                return ws(service("x", scm="svn"), project_dir="/src")
        """))
        with pytest.raises(ConfigError, match="Invalid build file"):
            load_build_file(path)

    def test_nothing_defined(self, tmp_path):
        path = tmp_path / "ws.py"
        path.write_text("X = 1\n")
        with pytest.raises(ConfigError, match="must define"):
            load_build_file(path)

    def test_not_python(self, tmp_path):
        path = tmp_path / "ws.txt"
        path.write_text("")
        with pytest.raises(ConfigError):
            load_build_file(path)


class TestFindBuildFile:
    def test_explicit_path_without_suffix(self, tmp_path):
        (tmp_path / "mine.py").write_text("")
        assert find_build_file(str(tmp_path / "mine")) == tmp_path / "mine.py"

    def test_explicit_missing(self, tmp_path):
        with pytest.raises(ConfigError):
            find_build_file(str(tmp_path / "nope.py"))

    def test_default_in_cwd_beats_env(self, tmp_path, monkeypatch):
        (tmp_path / "fleetbuild_workspace.py").write_text("")
        other = tmp_path / "other.py"
        other.write_text("")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("FLEETBUILD_FILE", str(other))
        assert find_build_file().name == "fleetbuild_workspace.py"

    def test_env_fallback(self, tmp_path, monkeypatch):
        other = tmp_path / "other.py"
        other.write_text("")
        (tmp_path / "elsewhere").mkdir()
        monkeypatch.chdir(tmp_path / "elsewhere")
        monkeypatch.setenv("FLEETBUILD_FILE", str(other))
        assert find_build_file() == other

    def test_nothing_found(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("FLEETBUILD_FILE", raising=False)
        with pytest.raises(ConfigError, match="No build file found"):
            find_build_file()


# ---------------------------------------------------------------------
# Project construction
# ---------------------------------------------------------------------

class NameReader:
    """Manifest reader that derives the coordinate from the directory name."""

    def __init__(self):
        self.read_roots = []

    def read(self, root):
        self.read_roots.append(root.name)
        return Coordinate("g", root.name), []


@pytest.fixture
def workspace_dir(tmp_path):
    (tmp_path / "core" / ".git").mkdir(parents=True)
    (tmp_path / "platform" / ".git").mkdir(parents=True)
    (tmp_path / "platform" / "util").mkdir()
    svn_git = tmp_path / "search" / ".git"
    svn_git.mkdir(parents=True)
    (svn_git / "config").write_text('[core]\n[svn-remote "svn"]\n')
    return tmp_path


class TestCreateProjects:
    def build_file(self):
        return ws(
            "core",
            library("util", repo="platform", always_build=True, mvn_flags=["-DskipTests"]),
            service("search"),
            service("orders-service", basis_branch="develop"),
        )

    def test_projects(self, workspace_dir):
        reader = NameReader()
        cfg = RunConfig.resolve(self.build_file(), project_dir=workspace_dir, auto_reset=True)
        projects = create_projects(self.build_file(), cfg, manifest_reader=reader)
        by_name = {p.name: p for p in projects}

        assert list(by_name) == ["core", "platform/util", "search", "orders-service"]
        assert reader.read_roots == ["core", "util", "search"]

        util = by_name["platform/util"]
        assert util.root == workspace_dir.resolve() / "platform" / "util"
        assert util.repo.path == workspace_dir.resolve() / "platform"
        assert util.always_build and util.build_flags == ["-DskipTests"]
        assert isinstance(util.deployer, NoDeploy)
        assert util.auto_reset
        assert util.status is Status.MANIFEST_READ

        search = by_name["search"]
        assert isinstance(search.repo, GitSvnRepository)
        assert isinstance(search.deployer, ArchiveDeploy)
        assert search.deployer.archive == "search.war"

        orders = by_name["orders-service"]
        assert not orders.repo.exists()
        assert orders.status is Status.NEW
        assert orders.basis_branch == "develop"
        assert orders.deployer.service == "orders"
        assert by_name["core"].basis_branch == "master"

    def test_selection(self, workspace_dir):
        cfg = RunConfig.resolve(self.build_file(), project_dir=workspace_dir,
                                project_list=["platform/util", "search", "unknown"])
        projects = create_projects(self.build_file(), cfg, manifest_reader=NameReader())
        assert [p.name for p in projects] == ["platform/util", "search"]

    def test_bare_name_selects_sub_project(self, workspace_dir):
        cfg = RunConfig.resolve(self.build_file(), project_dir=workspace_dir, project_list=["util"])
        projects = create_projects(self.build_file(), cfg, manifest_reader=NameReader())
        assert [p.name for p in projects] == ["platform/util"]

    def test_missing_sub_project_dir(self, workspace_dir):
        bf = ws(library("web", repo="platform"))
        cfg = RunConfig.resolve(bf, project_dir=workspace_dir)
        with pytest.raises(ConfigError, match="Sub-project directory"):
            create_projects(bf, cfg, manifest_reader=NameReader())

    def test_open_repositories_reads_no_manifest(self, workspace_dir):
        cfg = RunConfig.resolve(self.build_file(), project_dir=workspace_dir)
        repos = open_repositories(self.build_file(), cfg)
        assert [name for name, _ in repos] == ["core", "platform/util", "search", "orders-service"]
