# tests/test_builder.py
"""
Tests for the declaration model builder.
"""

import pytest

from cppstyle.builder import build_tree, count_statements, join_tokens, match_close
from cppstyle.lexer import Lexer
from cppstyle.model import DeclarationKind, ExceptionSpec, Visibility
from tests.conftest import find, names, tree_for


class TestHelpers:

    def test_match_close(self):
        code = Lexer("f(a, (b), c)").tokens()
        assert match_close(code, 1) == len(code) - 1

    def test_match_close_unbalanced(self):
        code = Lexer("f(a, b").tokens()
        assert match_close(code, 1) == -1

    def test_join_tokens(self):
        assert join_tokens(Lexer("const std :: string &").tokens()) == "const std::string&"

    @pytest.mark.parametrize("source, expected", [
        ("{ }", 0),
        ("{ a(); }", 1),
        ("{ a(); b(); }", 2),
        ("{ if (x) a(); else b(); }", 1),
        ("{ do { a(); } while (x); }", 1),
        ("{ for (int i = 0; i < 3; ++i) { a(); } b(); }", 2),
        ("{ int v[] = { 1, 2 }; }", 1),
    ])
    def test_count_statements(self, source, expected):
        code = Lexer(source).tokens()
        assert count_statements(code, 0, len(code) - 1) == expected


class TestNamespaces:

    def test_nested_namespace_definition(self):
        tree = tree_for("namespace a::b { int f() noexcept; }")
        assert names(tree) == ["a", "b", "f"]
        f = find(tree, "f")
        assert f.namespace_path == ("a", "b")
        assert find(tree, "a").body is None
        assert find(tree, "b").body is not None

    def test_anonymous_namespace(self):
        tree = tree_for("namespace { int x; }")
        (ns,) = tree.of_kind(DeclarationKind.NAMESPACE)
        assert ns.is_anonymous
        assert ns.has("anonymous")
        assert (ns.name_line, ns.name_column) == (1, 1)

    def test_inline_namespace(self):
        tree = tree_for("inline namespace v1 { }")
        assert find(tree, "v1").has("inline")

    def test_namespace_alias_is_not_a_declaration(self):
        tree = tree_for("namespace app\n{\nnamespace fs = std::filesystem;\n}\n")
        assert names(tree) == ["app"]
        assert tree.opaque_regions == []

    def test_lone_namespace_alias_is_a_whole_file_region(self):
        tree = tree_for("namespace fs = std::filesystem;")
        (region,) = tree.opaque_regions
        assert region.reason == "no declarations recognised"

    def test_extern_c_block_is_transparent(self):
        tree = tree_for('extern "C" { void c_api(); }')
        fn = find(tree, "c_api")
        assert fn.namespace_path == ()


class TestClasses:

    SOURCE = """
    class widget : public base
    {
    public:
        widget() noexcept;
        ~widget() noexcept;
        virtual void draw() const override;
        static constexpr int limit = 4;
    protected:
        int size_ = 0;
    private:
        int count_;
    };
    """

    def test_members_and_visibility(self):
        tree = tree_for(self.SOURCE)
        cls = find(tree, "widget")
        assert cls.kind is DeclarationKind.CLASS_OR_STRUCT
        assert cls.has("class") and cls.has("definition")
        vis = {d.name: d.visibility for d in cls.children}
        assert vis["limit"] is Visibility.PUBLIC
        assert vis["size_"] is Visibility.PROTECTED
        assert vis["count_"] is Visibility.PRIVATE

    def test_special_members(self):
        tree = tree_for(self.SOURCE)
        ctor, dtor = [d for d in find(tree, "widget").children
                      if d.kind is DeclarationKind.FUNCTION][:2]
        assert ctor.has("constructor")
        assert dtor.has("destructor")
        assert not ctor.returns_value

    def test_function_qualifiers(self):
        draw = find(tree_for(self.SOURCE), "draw")
        assert {"virtual", "const", "override", "member"} <= draw.qualifiers
        assert draw.return_type == "void"
        assert draw.exception_spec is ExceptionSpec.NONE

    def test_static_constexpr_member(self):
        limit = find(tree_for(self.SOURCE), "limit")
        assert limit.kind is DeclarationKind.VARIABLE
        assert {"static", "constexpr", "member"} <= limit.qualifiers
        assert limit.has_initializer

    def test_struct_defaults_to_public(self):
        tree = tree_for("struct point { int x; };")
        assert find(tree, "x").visibility is Visibility.PUBLIC

    def test_forward_declaration(self):
        cls = find(tree_for("class widget;"), "widget")
        assert not cls.has("definition")
        assert cls.body is None

    def test_scoped_enum(self):
        tree = tree_for("enum class colour { red, green = 2 };")
        colour = find(tree, "colour")
        assert {"enum", "scoped", "definition"} <= colour.qualifiers
        red, green = colour.children
        assert red.has("enumerator")
        assert not red.has_initializer
        assert green.has_initializer

    def test_trailing_declarator(self):
        tree = tree_for("struct { int x; } origin;")
        origin = find(tree, "origin")
        assert origin.kind is DeclarationKind.VARIABLE


class TestFunctions:

    @pytest.mark.parametrize("source, spec", [
        ("void a() noexcept;", ExceptionSpec.NOEXCEPT),
        ("void a() noexcept(true);", ExceptionSpec.NOEXCEPT),
        ("void a() noexcept(false);", ExceptionSpec.NOEXCEPT_FALSE),
        ("void a() noexcept(sizeof(int) > 2);", ExceptionSpec.NOEXCEPT_EXPR),
        ("void a();", ExceptionSpec.NONE),
    ])
    def test_exception_specs(self, source, spec):
        assert find(tree_for(source), "a").exception_spec is spec

    def test_exception_position(self):
        fn = find(tree_for("void parse() noexcept(false);"), "parse")
        assert (fn.exception_line, fn.exception_column) == (1, 14)

    def test_parameters(self):
        fn = find(tree_for(
            "void g(const std::string& name, int* out, int values[4], int count = 0, int);"
        ), "g")
        name, out, values, count, unnamed = fn.parameters
        assert name.name == "name"
        assert name.type_text == "const std::string&"
        assert {"reference", "const"} <= name.qualifiers
        assert "pointer" in out.qualifiers
        assert "array" in values.qualifiers
        assert count.name == "count" and count.is_by_value and not count.is_const
        assert unnamed.name == ""

    def test_void_parameter_list(self):
        assert find(tree_for("int f(void) noexcept;"), "f").parameters == ()

    def test_return_type(self):
        assert find(tree_for("std::size_t size() noexcept;"), "size").return_type == "std::size_t"
        assert find(tree_for("auto size() -> int;"), "size").return_type == "int"

    def test_out_of_line_definition(self):
        fn = find(tree_for("void widget::draw() noexcept {}"), "draw")
        assert fn.qualified_by == ("widget",)
        assert fn.has("definition")

    def test_deleted_function(self):
        tree = tree_for("struct s { s(const s&) = delete; };")
        ctor = [d for d in find(tree, "s").children if d.kind is DeclarationKind.FUNCTION][0]
        assert ctor.has("deleted")

    def test_operator(self):
        tree = tree_for("struct s { bool operator==(const s& other) const noexcept; };")
        op = [d for d in tree.walk() if d.kind is DeclarationKind.FUNCTION][0]
        assert op.name == "operator=="
        assert op.has("operator")

    def test_body_info(self):
        tree = tree_for("""
        void f() noexcept
        {
            a();
            b();
        }
        """)
        body = find(tree, "f").body
        assert body.statement_count == 2
        assert body.alone_on_line
        assert (body.open_line, body.open_column) == (2, 1)
        assert body.owner_indent == 1


class TestTemplates:

    def test_template_parameters(self):
        tree = tree_for("template <typename T, int N = 3, typename... Rest> class box;")
        box = find(tree, "box")
        t, n, rest = box.template_parameters
        assert (t.name, n.name, rest.name) == ("T", "N", "Rest")
        assert t.has("type")
        assert n.has("nontype")
        assert rest.has("pack")

    def test_template_function_span_starts_at_template(self):
        fn = find(tree_for("template <typename T>\nT id(T v) noexcept;"), "id")
        assert fn.span.line == 1
        assert fn.name_line == 2

    def test_ids_increase_in_walk_order(self):
        tree = tree_for("""
        namespace n
        {
        template <typename T>
        struct holder
        {
            T value;
        };
        int f(int a) noexcept
        {
            int b = a;
            return b;
        }
        }
        """)
        ids = [d.id for d in tree.walk()]
        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)


class TestAliases:

    def test_using_alias(self):
        alias = find(tree_for("using index_t = std::size_t;"), "index_t")
        assert alias.kind is DeclarationKind.TYPE_ALIAS
        assert alias.type_text == "std::size_t"
        assert alias.has("using")

    def test_typedef(self):
        alias = find(tree_for("typedef unsigned long size_type;"), "size_type")
        assert alias.has("typedef")

    def test_function_pointer_typedef(self):
        tree = tree_for("typedef void (*handler_t)(int);")
        assert names(tree) == ["handler_t"]

    def test_using_declaration_skipped(self):
        tree = tree_for("namespace app\n{\nusing std::string;\n}\n")
        assert names(tree) == ["app"]
        assert tree.opaque_regions == []


class TestFunctionBodies:

    SOURCE = """
    int f(int a) noexcept
    {
        int b = a;
        for (int i = 0; i < b; ++i)
        {
            b += i;
        }
        return b;
    }
    """

    def test_locals(self):
        fn = find(tree_for(self.SOURCE), "f")
        assert [v.name for v in fn.locals] == ["b", "i"]
        assert fn.locals[1].has("loop")

    def test_written_names(self):
        fn = find(tree_for(self.SOURCE), "f")
        assert {"b", "i"} <= fn.written_names
        assert "a" not in fn.written_names

    def test_shadowed_names(self):
        fn = find(tree_for("""
        void f() noexcept
        {
            {
                int v = 1;
                use(v);
            }
            int v = 2;
        }
        """), "f")
        assert fn.shadowed_names == {"v"}


class TestDocumentationIndex:

    def test_preceding_block(self):
        tree = tree_for("/// @brief Adds.\nint add() noexcept;")
        block = tree.doc_for(find(tree, "add"))
        assert block is not None
        assert block.bodies("brief") == ("Adds.",)

    def test_blank_line_breaks_association(self):
        tree = tree_for("/// @brief Adds.\n\nint add() noexcept;")
        assert tree.doc_for(find(tree, "add")) is None

    def test_template_declaration_uses_template_line(self):
        tree = tree_for("/// @brief Box.\ntemplate <typename T>\nstruct box\n{\n};")
        assert tree.doc_for(find(tree, "box")) is not None

    def test_trailing_member_doc(self):
        tree = tree_for("struct p\n{\n    int x; ///< @brief Horizontal.\n};")
        block = tree.doc_for(find(tree, "x"))
        assert block is not None and block.trailing


class TestDegradation:

    def test_lone_macro_becomes_whole_file_region(self):
        tree = tree_for("MAKE_THING(a, b)\n")
        (region,) = tree.opaque_regions
        assert tree.declaration_count == 0
        assert region.reason == "no declarations recognised"

    def test_garbage_is_local(self):
        tree = tree_for("int x = 0;\n) ;\nint y = 1;\n")
        assert [d.name for d in tree.walk() if d.kind is DeclarationKind.VARIABLE] == ["x", "y"]
        (region,) = tree.opaque_regions
        assert region.span.line == 2

    def test_unclosed_namespace(self):
        tree = tree_for("namespace a {\nint x;\n")
        assert find(tree, "x")
        assert len(tree.opaque_regions) == 1

    def test_dangling_comma_at_end_of_input(self):
        tree = tree_for("int a, b,")
        assert [d.name for d in tree.walk() if d.kind is DeclarationKind.VARIABLE] == ["a", "b"]
        (region,) = tree.opaque_regions
        assert (region.span.line, region.span.column) == (1, 9)

    def test_dangling_comma_inside_namespace(self):
        tree = tree_for("namespace n { int a, }")
        assert find(tree, "a")
        assert len(tree.opaque_regions) == 1

    def test_empty_file(self):
        tree = tree_for("")
        assert list(tree.walk()) == []

    def test_comment_only_file(self):
        tree = tree_for("// nothing here\n")
        assert tree.opaque_regions == []

    def test_build_tree_from_text(self):
        tree = build_tree("int x;", "a.cpp")
        assert tree.file == "a.cpp"
        assert names(tree) == ["x"]
