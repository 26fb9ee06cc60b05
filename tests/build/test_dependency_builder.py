"""
Unit tests for the dependency library builder.
"""

import pytest

from dfupack.build import AutotoolsBuilder, DependencyBuilder
from dfupack.core.exceptions import CompileFailed


@pytest.fixture
def work_dir(tmp_path, dependency_target):
    work_dir = tmp_path / "work"
    (work_dir / dependency_target.folder).mkdir(parents=True)
    (work_dir / dependency_target.archive).write_bytes(b"cached")
    return work_dir


def install_pkgconfig(prefix):
    """Runner action standing in for 'make install' of libusb."""

    def action(call):
        pkgconfig = prefix / "lib" / "pkgconfig"
        pkgconfig.mkdir(parents=True, exist_ok=True)
        (pkgconfig / "libusb-1.0.pc").write_text("Name: libusb-1.0\n")

    return action


class TestDependencyBuilder:
    """Test DependencyBuilder."""

    def test_builds_into_prefix(self, tmp_path, work_dir, dependency_target, fake_runner):
        """Test a fresh prefix runs the full build and returns discovery metadata."""
        prefix = tmp_path / "prefix"
        fake_runner.on("make", "install", action=install_pkgconfig(prefix))
        builder = DependencyBuilder(AutotoolsBuilder(work_dir, runner=fake_runner), environ={})

        discovery = builder.build(dependency_target, prefix)

        assert fake_runner.commands() == [
            ["./configure", f"--prefix={prefix}"],
            ["make"],
            ["make", "install"],
        ]
        assert discovery.pkg_config_dir == prefix / "lib" / "pkgconfig"
        assert discovery.search_path == str(prefix / "lib" / "pkgconfig")

    def test_second_build_is_cached(self, tmp_path, work_dir, dependency_target, fake_runner):
        """Test a populated prefix skips configure and make entirely."""
        prefix = tmp_path / "prefix"
        fake_runner.on("make", "install", action=install_pkgconfig(prefix))
        builder = DependencyBuilder(AutotoolsBuilder(work_dir, runner=fake_runner), environ={})

        first = builder.build(dependency_target, prefix)
        calls_after_first = len(fake_runner.calls)
        second = builder.build(dependency_target, prefix)

        assert len(fake_runner.calls) == calls_after_first
        assert first == second

    def test_existing_prefix_needs_no_source(self, tmp_path, dependency_target, fake_runner):
        """Test a cache hit neither downloads nor extracts."""
        prefix = tmp_path / "prefix"
        (prefix / "lib" / "pkgconfig").mkdir(parents=True)
        builder = DependencyBuilder(
            AutotoolsBuilder(tmp_path / "empty-work", runner=fake_runner),
            environ={"PKG_CONFIG_PATH": "/usr/share/pkgconfig"},
        )

        discovery = builder.build(dependency_target, prefix)

        assert fake_runner.calls == []
        assert discovery.inherited == "/usr/share/pkgconfig"
        assert not (tmp_path / "empty-work").exists()

    def test_failure_propagates(self, tmp_path, work_dir, dependency_target, fake_runner):
        fake_runner.on("make", returncode=2)
        builder = DependencyBuilder(AutotoolsBuilder(work_dir, runner=fake_runner))

        with pytest.raises(CompileFailed):
            builder.build(dependency_target, tmp_path / "prefix")

        assert not builder.is_built(tmp_path / "prefix")
