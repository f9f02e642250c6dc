import pytest

from cmdb_devkit.deploy.deployer import DeployError, deploy_artifact


@pytest.fixture
def lib_dir(tmp_path):
    lib = tmp_path / "webapp" / "WEB-INF" / "lib"
    lib.mkdir(parents=True)
    (lib / "spring-core-5.3.jar").write_bytes(b"unrelated")
    return lib


@pytest.fixture
def artifact(tmp_path):
    target = tmp_path / "source" / "core" / "all" / "target"
    target.mkdir(parents=True)
    jar = target / "cmdbuild-core-3.4.jar"
    jar.write_bytes(b"x" * 1024)
    return jar


def test_new_artifact_is_flagged(lib_dir, artifact):
    result = deploy_artifact(artifact, lib_dir)

    assert not result.replaced
    assert result.old_size is None
    assert result.new_size == 1024
    assert (lib_dir / "cmdbuild-core-3.4.jar").read_bytes() == artifact.read_bytes()


def test_existing_artifact_is_overwritten(lib_dir, artifact):
    (lib_dir / artifact.name).write_bytes(b"y" * 10)

    result = deploy_artifact(artifact, lib_dir)

    assert result.replaced
    assert (result.old_size, result.new_size) == (10, 1024)


def test_redeploy_is_idempotent(lib_dir, artifact):
    deploy_artifact(artifact, lib_dir)
    second = deploy_artifact(artifact, lib_dir)

    assert second.replaced
    assert second.old_size == second.new_size == 1024
    assert sorted(p.name for p in lib_dir.iterdir()) == ["cmdbuild-core-3.4.jar", "spring-core-5.3.jar"]


def test_never_removes_other_libraries(lib_dir, artifact):
    deploy_artifact(artifact, lib_dir)
    assert (lib_dir / "spring-core-5.3.jar").read_bytes() == b"unrelated"


def test_missing_library_directory(tmp_path, artifact):
    with pytest.raises(DeployError):
        deploy_artifact(artifact, tmp_path / "webapp" / "WEB-INF" / "lib")
