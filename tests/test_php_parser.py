from kb_embedder.indexing.chunker import BlockType
from kb_embedder.indexing.parsers.php_parser import PHPParser

SOURCE = """<?php
abstract class User {
    public function getName() {
        return $this->name;
    }
    abstract protected function save();
}
function helper($x) {
    return $x;
}
"""


def test_methods_functions_and_abstract_signatures():
    get_name, save, helper = PHPParser().parse_content(SOURCE, "user.php")

    assert get_name.block_type is BlockType.METHOD
    assert get_name.class_name == "User"
    assert (get_name.start_line, get_name.end_line) == (3, 5)

    assert save.method_name == "save"
    assert (save.start_line, save.end_line) == (6, 6)

    assert helper.block_type is BlockType.FUNCTION
    assert helper.class_name is None
    assert (helper.start_line, helper.end_line) == (8, 10)


def test_closures_and_comments():
    source = (
        "<?php\n"
        "# function commented() {}\n"
        "$double = fn($x) => $x * 2;\n"
        "$greet = function ($name) {\n"
        "    return 'hi ' . $name;\n"
        "};\n"
    )
    double, greet = PHPParser().parse_content(source, "f.php")

    assert (double.method_name, double.start_line, double.end_line) == ("double", 3, 3)
    assert (greet.method_name, greet.start_line, greet.end_line) == ("greet", 4, 6)
