from datetime import date

from typer.testing import CliRunner

from pagebundle.main import app

runner = CliRunner()


def _invoke(site, *args):
    return runner.invoke(app, [*args, "--site", str(site)])


class TestNew:
    def test_creates_bundle(self, site, content_root):
        result = _invoke(site, "new", "My Post Title", "--date", "2025-11-01", "--tag", "hugo")
        assert result.exit_code == 0, result.output
        entry = content_root / "2025-11-01-my-post-title" / "index.md"
        assert entry.is_file()
        assert "draft: true" in entry.read_text(encoding="utf-8")
        assert (content_root / "2025-11-01-my-post-title" / "images").is_dir()

    def test_publish(self, site, content_root):
        result = _invoke(site, "new", "Live", "--date", "2025-11-01", "--publish")
        assert result.exit_code == 0, result.output
        text = (content_root / "2025-11-01-live" / "index.md").read_text(encoding="utf-8")
        assert "draft: false" in text

    def test_collision_fails(self, site):
        assert _invoke(site, "new", "Twice", "--date", "2025-11-01").exit_code == 0
        result = _invoke(site, "new", "Twice", "--date", "2025-11-01")
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_bad_date(self, site):
        result = _invoke(site, "new", "X", "--date", "01/11/2025")
        assert result.exit_code != 0


class TestName:
    def test_prints_name(self):
        result = runner.invoke(app, ["name", "My Post Title", "--date", "2025-11-01"])
        assert result.exit_code == 0
        assert result.output.strip() == "2025-11-01-my-post-title"

    def test_default_date(self):
        result = runner.invoke(app, ["name", "Hi"])
        assert result.output.strip() == f"{date.today().isoformat()}-hi"


class TestCheck:
    def test_ok(self, site, make_bundle):
        make_bundle(body="![a](images/a.png)\n", assets=["images/a.png"])
        result = _invoke(site, "check")
        assert result.exit_code == 0, result.output
        assert "1 bundle(s) ok" in result.output

    def test_missing_asset(self, site, make_bundle):
        make_bundle(body="![alt](images/shot.png)\n")
        result = _invoke(site, "check")
        assert result.exit_code == 1
        assert "missing-asset" in result.output
        assert "images/shot.png" in result.output

    def test_strict_unreferenced(self, site, make_bundle):
        make_bundle(assets=["images/orphan.png"])
        assert _invoke(site, "check").exit_code == 0
        result = _invoke(site, "check", "--strict")
        assert result.exit_code == 1
        assert "orphan.png" in result.output

    def test_non_utf8_entry_is_reported(self, site, make_bundle):
        make_bundle("2025-11-01-ok", body="![a](images/a.png)\n", assets=["images/a.png"])
        bad = make_bundle("2025-11-02-bad")
        bad.entry_path.write_bytes(b"---\ntitle: Caf\xe9\n---\n")
        result = _invoke(site, "check")
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "unreadable-entry" in result.output


class TestMigrate:
    def test_all(self, site, content_root):
        (content_root / "old.md").write_text(
            "---\ntitle: Old Post\ndate: 2020-01-02\n---\nbody\n", encoding="utf-8"
        )
        result = _invoke(site, "migrate", "--all")
        assert result.exit_code == 0, result.output
        assert (content_root / "2020-01-02-old-post" / "index.md").is_file()
        assert not (content_root / "old.md").exists()

    def test_dry_run(self, site, content_root):
        legacy = content_root / "old.md"
        legacy.write_text("---\ntitle: Old Post\ndate: 2020-01-02\n---\n", encoding="utf-8")
        result = _invoke(site, "migrate", str(legacy), "--dry-run")
        assert result.exit_code == 0, result.output
        assert "2020-01-02-old-post" in result.output
        assert legacy.exists()

    def test_needs_paths(self, site):
        result = _invoke(site, "migrate")
        assert result.exit_code == 1


class TestListAndArchive:
    def test_list(self, site, content_root, make_bundle):
        make_bundle("2025-11-01-a", title="Alpha")
        (content_root / "b.md").write_text("---\ntitle: Beta\n---\n", encoding="utf-8")
        result = _invoke(site, "list")
        assert result.exit_code == 0, result.output
        assert "Alpha" in result.output
        assert "Beta" in result.output

    def test_list_with_non_utf8_entry(self, site, make_bundle):
        make_bundle("2025-11-01-a", title="Alpha")
        bad = make_bundle("2025-11-02-bad")
        bad.entry_path.write_bytes(b"---\ntitle: Caf\xe9\n---\n")
        result = _invoke(site, "list")
        assert result.exit_code == 0, result.output
        assert result.exception is None
        assert "Alpha" in result.output

    def test_archive(self, site, make_bundle):
        bundle = make_bundle()
        dest = site / "archive"
        result = _invoke(site, "archive", bundle.name, str(dest))
        assert result.exit_code == 0, result.output
        assert (dest / bundle.name / "index.md").is_file()

    def test_archive_refuses_absolute(self, site, make_bundle):
        bundle = make_bundle(body="![x](/images/x.png)\n")
        result = _invoke(site, "archive", bundle.name, str(site / "archive"))
        assert result.exit_code == 1
        assert bundle.path.exists()

    def test_archive_refuses_escaping_reference(self, site, make_bundle):
        bundle = make_bundle(body="![x](../shared/x.png)\n")
        result = _invoke(site, "archive", bundle.name, str(site / "archive"))
        assert result.exit_code == 1
        assert "escapes-bundle" in result.output
        assert bundle.path.exists()

    def test_archive_unknown(self, site):
        result = _invoke(site, "archive", "nope", str(site / "archive"))
        assert result.exit_code == 1
