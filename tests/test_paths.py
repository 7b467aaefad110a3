import pytest

from s3dirfs import paths


class TestQualify:
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/", "/"),
            ("/a/b", "/a/b"),
            ("/a/b/", "/a/b"),
            ("/a//b", "/a/b"),
            ("//a", "/a"),
            ("/a/./b/../c", "/a/c"),
            ("/..", "/"),
        ],
    )
    def test_absolute(self, path, expected):
        assert paths.qualify(path) == expected

    def test_relative(self):
        assert paths.qualify("b/c", "/a") == "/a/b/c"
        assert paths.qualify("..", "/a") == "/"
        assert paths.qualify("", "/a") == "/a"

    def test_uri(self):
        assert paths.qualify("s3://bucket/a/b") == "/a/b"
        assert paths.qualify("s3a://bucket/a/") == "/a"
        assert paths.qualify("s3://bucket", bucket="bucket") == "/"

    def test_uri_wrong_scheme(self):
        with pytest.raises(ValueError, match="scheme"):
            paths.qualify("hdfs://bucket/a")

    def test_uri_wrong_bucket(self):
        with pytest.raises(ValueError, match="bucket"):
            paths.qualify("s3://other/a", bucket="bucket")

    def test_not_a_string(self):
        with pytest.raises(TypeError):
            paths.qualify(None)


class TestKeys:
    def test_path_to_key(self):
        assert paths.path_to_key("/") == ""
        assert paths.path_to_key("/a/b") == "a/b"

    def test_key_to_path(self):
        assert paths.key_to_path("a/b") == "/a/b"
        assert paths.key_to_path("a/b/") == "/a/b"
        assert paths.key_to_path("") == "/"

    def test_trailing_slash(self):
        assert paths.maybe_add_trailing_slash("a") == "a/"
        assert paths.maybe_add_trailing_slash("a/") == "a/"
        assert paths.maybe_add_trailing_slash("") == ""


class TestHierarchy:
    def test_parent(self):
        assert paths.parent("/a/b") == "/a"
        assert paths.parent("/a") == "/"
        assert paths.parent("/") is None

    def test_basename_and_join(self):
        assert paths.basename("/a/b.txt") == "b.txt"
        assert paths.join("/a", "b.txt") == "/a/b.txt"
        assert paths.join("/", "b") == "/b"

    def test_ancestors(self):
        assert list(paths.ancestors("/a/b/c")) == ["/a/b", "/a", "/"]
        assert list(paths.ancestors("/")) == []

    def test_is_descendant(self):
        assert paths.is_descendant("/a/b", "/a")
        assert paths.is_descendant("/a/b/c", "/")
        assert not paths.is_descendant("/a", "/a")
        assert not paths.is_descendant("/ab", "/a")
        assert not paths.is_descendant("/a", "/a/b")
