from bpcli.info import (
    BuildInfoService,
    InfoService,
    upstream_readme_tagged,
)


class _FakeBuildInfo:
    def __init__(self, version):
        self.version = version
        self.calls = 0

    def get_build_info(self):
        self.calls += 1
        return self.version


def test_preset_version_is_returned():
    build = _FakeBuildInfo("v9.9.9")
    service = InfoService(version="whatever", build_info=build)
    assert service.get_version() == "whatever"
    assert build.calls == 0


def test_build_info_version_when_no_preset():
    build = _FakeBuildInfo("v1.2.3")
    service = InfoService(version="", build_info=build)
    assert service.get_version() == "1.2.3"
    assert build.calls == 1


def test_unknown_when_no_version_source():
    build = _FakeBuildInfo(None)
    service = InfoService(version="", build_info=build)
    assert service.get_version() == "unknown"
    assert build.calls == 1


def test_upstream_readme_tagged_embeds_version():
    url = upstream_readme_tagged("1.2.3")
    assert url.startswith("https://")
    assert url.endswith("/-/blob/1.2.3/README.md")


def test_build_info_missing_distribution_is_none():
    service = BuildInfoService("no-such-distribution-installed-here")
    assert service.get_build_info() is None


def test_version_unknown_with_missing_distribution():
    service = InfoService(
        version="", build_info=BuildInfoService("no-such-distribution-installed-here")
    )
    assert service.get_version() == "unknown"