from kb_embedder.indexing.chunker import BlockType
from kb_embedder.indexing.parsers.python_parser import PythonParser


def parse(content):
    return PythonParser().parse_content(content, "mod.py")


def test_method_inside_class():
    blocks = parse("class Foo:\n    def bar(self):\n        pass\n")

    assert len(blocks) == 1
    block = blocks[0]
    assert block.block_type is BlockType.METHOD
    assert block.class_name == "Foo"
    assert block.method_name == "bar"
    assert (block.start_line, block.end_line) == (2, 3)
    assert block.raw_text == "    def bar(self):\n        pass"


def test_function_after_class_has_no_class_name():
    source = (
        "class Foo:\n"
        "    def bar(self):\n"
        "        return 1\n"
        "\n"
        "def baz():\n"
        "    return 2\n"
    )
    bar, baz = parse(source)

    assert (bar.block_type, bar.start_line, bar.end_line) == (BlockType.METHOD, 2, 3)
    assert baz.block_type is BlockType.FUNCTION
    assert baz.class_name is None
    assert baz.method_name == "baz"
    assert (baz.start_line, baz.end_line) == (5, 6)


def test_async_and_decorated_functions():
    source = (
        "import asyncio\n"
        "\n"
        "@cache\n"
        "async def fetch(url):\n"
        "    return await get(url)\n"
    )
    (block,) = parse(source)
    assert block.method_name == "fetch"
    assert block.block_type is BlockType.FUNCTION
    assert block.start_line == 4


def test_nested_function_is_its_own_block():
    source = (
        "def outer():\n"
        "    def inner():\n"
        "        return 1\n"
        "    return inner\n"
    )
    outer, inner = parse(source)
    assert (outer.start_line, outer.end_line) == (1, 4)
    assert (inner.start_line, inner.end_line) == (2, 3)
    assert inner.block_type is BlockType.FUNCTION


def test_comments_and_empty_file():
    assert parse("") == []
    assert parse("# def nope():\n    pass\n") == []


def test_parse_reads_file(tmp_path):
    path = tmp_path / "m.py"
    path.write_text("def f():\n    return 1\n", encoding="utf-8")
    (block,) = PythonParser().parse(str(path))
    assert block.file_path == str(path)
    assert block.method_name == "f"
