import unittest
from pathlib import Path

from cmdb_devkit.modules.discovery import ModuleMap, discover_modules, normalize_module_dir, read_artifact_id


def test_discovers_modules_with_sources(maven_tree):
    module_map = discover_modules(maven_tree)
    assert module_map.modules == {
        "core/all": "cmdbuild-core",
        "dao/postgresql": "cmdbuild-dao-postgresql",
        "auth": "cmdbuild-auth",
        "auth/login": "cmdbuild-auth-login",
    }


def test_discovery_is_deterministic(maven_tree):
    assert discover_modules(maven_tree) == discover_modules(maven_tree)


def test_reads_own_artifact_id_not_parent(maven_tree):
    assert read_artifact_id(maven_tree / "core" / "all" / "pom.xml") == "cmdbuild-core"


def test_skips_directories_without_main_sources(maven_tree, add_module):
    add_module(maven_tree, "parent-only", "cmdbuild-bom", with_sources=False)
    assert "parent-only" not in discover_modules(maven_tree)


def test_prunes_build_output(maven_tree, add_module):
    add_module(maven_tree, "core/all/target/classes/META-INF/maven", "copied-pom")
    module_map = discover_modules(maven_tree)
    assert all(not directory.startswith("core/all/target") for directory in module_map.modules)


def test_unparsable_descriptor_is_skipped(maven_tree):
    broken = maven_tree / "broken"
    (broken / "src" / "main" / "java").mkdir(parents=True)
    (broken / "pom.xml").write_text("<project><artifactId>oops</project>")

    module_map = discover_modules(maven_tree)

    assert "broken" not in module_map
    assert len(module_map) == 4


def test_descriptor_without_namespace_or_artifact_id_is_absent(maven_tree):
    plain = maven_tree / "plain"
    (plain / "src" / "main" / "java").mkdir(parents=True)
    (plain / "pom.xml").write_text("<project><artifactId>plain</artifactId></project>")

    assert "plain" not in discover_modules(maven_tree)


def test_root_module(tmp_path, add_module):
    add_module(tmp_path, ".", "single")
    assert discover_modules(tmp_path).modules == {".": "single"}


class TestModuleMap(unittest.TestCase):
    def setUp(self) -> None:
        self.module_map = ModuleMap({"a": "mod-a", "a/b": "mod-ab", "ab": "mod-ab2"})

    def test_normalize_module_dir(self) -> None:
        self.assertEqual(normalize_module_dir("./dao/postgresql/"), "dao/postgresql")
        self.assertEqual(normalize_module_dir("dao/postgresql"), "dao/postgresql")
        self.assertEqual(normalize_module_dir("./"), ".")
        self.assertEqual(normalize_module_dir(""), ".")

    def test_artifact_id_defaults(self) -> None:
        self.assertEqual(self.module_map.artifact_id("./a"), "mod-a")
        self.assertEqual(self.module_map.artifact_id("missing"), "unknown")
        self.assertEqual(self.module_map.artifact_id("missing", default="?"), "?")

    def test_contains_normalises(self) -> None:
        self.assertIn("./a/b/", self.module_map)
        self.assertNotIn("c", self.module_map)

    def test_owner_prefers_deepest_module(self) -> None:
        self.assertEqual(self.module_map.owner_of("a/b/src/main/java/X.java"), "a/b")
        self.assertEqual(self.module_map.owner_of("a/src/main/java/Y.java"), "a")

    def test_owner_requires_directory_boundary(self) -> None:
        self.assertEqual(self.module_map.owner_of("ab/src/main/java/Z.java"), "ab")
        self.assertIsNone(self.module_map.owner_of("abc/src/main/java/Z.java"))

    def test_root_module_owns_nothing(self) -> None:
        module_map = ModuleMap({".": "root", "sub": "sub"})
        self.assertIsNone(module_map.owner_of("tools/Gen.java"))
        self.assertIsNone(module_map.owner_of("src/main/java/R.java"))
        self.assertEqual(module_map.owner_of("sub/src/main/java/S.java"), "sub")

    def test_directories_sorted(self) -> None:
        self.assertEqual(self.module_map.directories(), ["a", "a/b", "ab"])
        self.assertEqual(list(self.module_map), ["a", "a/b", "ab"])


if __name__ == "__main__":
    unittest.main()
