import pytest
from pydantic import BaseModel
from structlog.testing import capture_logs

from routedoc.errors import StructuralConflict
from routedoc.openapi.compiler import compile_api, decode_can_fail, path_template
from routedoc.openapi.models import Info
from routedoc.tree.nodes import (
    JSON,
    PLAIN_TEXT,
    BasicAuth,
    BearerAuth,
    Capture,
    CaptureAll,
    Delete,
    Description,
    Empty,
    Get,
    Header,
    Post,
    Put,
    QueryFlag,
    QueryParam,
    QueryParams,
    ReqBody,
    Respond,
    ResponseHeader,
    Segment,
    Summary,
)
from sample_api import User, UserId, api

USER_REF = {"$ref": "#/components/schemas/User"}
USER_ID_REF = {"$ref": "#/components/schemas/UserId"}


class Filter(BaseModel):
    field: str
    any_of: list["Filter"] = []


class TestUserScenario:
    def test_two_operations_under_root(self):
        document = compile_api(api)
        assert list(document.paths) == ["/"]
        assert list(document.paths["/"].operations()) == ["get", "post"]

    def test_registry_holds_user_and_user_id(self):
        data = compile_api(api).to_dict()
        assert sorted(data["components"]["schemas"]) == ["User", "UserId"]

    def test_get_lists_users(self):
        get = compile_api(api).to_dict()["paths"]["/"]["get"]
        assert get == {
            "responses": {
                "200": {
                    "description": "",
                    "content": {JSON: {"schema": {"type": "array", "items": USER_REF}}},
                }
            }
        }

    def test_post_infers_400_not_404(self):
        post = compile_api(api).to_dict()["paths"]["/"]["post"]
        assert post["requestBody"] == {"content": {JSON: {"schema": USER_REF}}, "required": True}
        assert post["responses"]["200"]["content"][JSON]["schema"] == USER_ID_REF
        assert post["responses"]["400"] == {"description": "Invalid `body`"}
        assert "404" not in post["responses"]

    def test_no_dangling_references(self):
        data = compile_api(api).to_dict()
        schemas = data["components"]["schemas"]

        def refs(node):
            if isinstance(node, dict):
                for key, value in node.items():
                    if key == "$ref":
                        yield value
                    else:
                        yield from refs(value)
            elif isinstance(node, list):
                for item in node:
                    yield from refs(item)

        for ref in refs(data):
            assert ref.removeprefix("#/components/schemas/") in schemas

    def test_info(self):
        document = compile_api(api, info=Info(title="Users", version="2.1"), servers=["https://api.example.com"])
        data = document.to_dict()
        assert data["openapi"] == "3.0.0"
        assert data["info"] == {"title": "Users", "version": "2.1"}
        assert data["servers"] == [{"url": "https://api.example.com"}]


class TestQualifierStacking:
    def test_qualifiers_apply_outer_first(self):
        tree = Segment("users") / Capture("user_id", int) / Header("X-Trace", str) / Get(User)
        document = compile_api(tree)
        get = document.operation("/users/{user_id}", "get")
        assert [(p.location, p.name) for p in get.parameters] == [("path", "user_id"), ("header", "X-Trace")]

    def test_no_leak_into_sibling(self):
        tree = Segment("users") / (Capture("user_id", int) / Get(User) | Get(list[User]))
        document = compile_api(tree)
        assert list(document.paths) == ["/users/{user_id}", "/users"]
        assert document.operation("/users", "get").parameters == []
        assert document.operation("/users/{user_id}", "get").parameters[0].name == "user_id"

    def test_summary_and_description(self):
        tree = Summary("List users") / Description("All of them") / Get(list[User]) | Segment("x") / Get(
            User, summary="One user"
        )
        document = compile_api(tree)
        assert document.operation("/", "get").summary == "List users"
        assert document.operation("/", "get").description == "All of them"
        assert document.operation("/x", "get").summary == "One user"

    def test_empty_tree(self):
        assert compile_api(Empty()).to_dict()["paths"] == {}


class TestParameters:
    def test_query_parameters(self):
        tree = (
            QueryParam("limit", int, required=True)
            / QueryParam("name", str)
            / QueryParams("tag", str)
            / QueryFlag("verbose")
            / Get(list[User])
        )
        params = compile_api(tree).to_dict()["paths"]["/"]["get"]["parameters"]
        assert params == [
            {"name": "limit", "in": "query", "required": True, "schema": {"type": "integer"}},
            {"name": "name", "in": "query", "required": False, "schema": {"type": "string"}},
            {
                "name": "tag",
                "in": "query",
                "required": False,
                "schema": {"type": "array", "items": {"type": "string"}},
            },
            {
                "name": "verbose",
                "in": "query",
                "required": False,
                "schema": {"type": "boolean"},
                "allowEmptyValue": True,
            },
        ]

    def test_recursive_query_type_keeps_component(self):
        data = compile_api(QueryParam("filter", Filter) / Get()).to_dict()
        schema = data["paths"]["/"]["get"]["parameters"][0]["schema"]
        assert schema["type"] == "object"
        assert schema["properties"]["any_of"]["items"] == {"$ref": "#/components/schemas/Filter"}
        assert data["components"]["schemas"]["Filter"]["required"] == ["field"]

    def test_capture_all(self):
        tree = Segment("files") / CaptureAll("path", str) / Get()
        param = compile_api(tree).operation("/files/{path}", "get").parameters[0]
        assert param.schema_ == {"type": "array", "items": {"type": "string"}}
        assert param.required is True

    def test_duplicate_in_chain(self):
        tree = QueryParam("q", int) / Segment("a") / QueryParam("q", int) / Get()
        with pytest.raises(StructuralConflict, match="query parameter `q` declared twice"):
            compile_api(tree)

    def test_two_bodies_in_chain(self):
        with pytest.raises(StructuralConflict, match="request body declared twice"):
            compile_api(ReqBody(User) / ReqBody(User) / Post())


class TestInferredResponses:
    def test_required_params_and_body_listed_in_order(self):
        tree = (
            Header("X-Version", int, required=True)
            / QueryParam("dry_run", bool, required=True)
            / ReqBody(User)
            / Put(UserId)
        )
        responses = compile_api(tree).to_dict()["paths"]["/"]["put"]["responses"]
        assert responses["400"]["description"] == "Invalid `X-Version` or `dry_run` or `body`"

    def test_text_and_optional_params_never_fail(self):
        tree = QueryParam("name", str, required=True) / QueryParam("limit", int) / Header("X-Id", str, required=True) / Get()
        assert set(compile_api(tree).to_dict()["paths"]["/"]["get"]["responses"]) == {"200"}

    def test_captures_listed_in_404(self):
        tree = Segment("users") / Capture("user_id", int) / Segment("posts") / Capture("post_id", int) / Get()
        responses = compile_api(tree).to_dict()["paths"]["/users/{user_id}/posts/{post_id}"]["get"]["responses"]
        assert responses["404"] == {"description": "`user_id` or `post_id` not found"}

    def test_text_capture_never_fails(self):
        tree = Segment("users") / Capture("name", str) / Get(User)
        assert "404" not in compile_api(tree).operation("/users/{name}", "get").responses

    def test_declared_response_overrides_inferred(self):
        tree = ReqBody(User) / Post(UserId, responses=(Respond(400, "User rejected"), Respond(409, "Exists")))
        responses = compile_api(tree).operation("/", "post").responses
        assert responses["400"].description == "User rejected"
        assert responses["409"].description == "Exists"

    def test_status_content_types_and_headers(self):
        tree = ReqBody(str, content_types=(PLAIN_TEXT,)) / Post(
            UserId, status=201, headers=(ResponseHeader("Location", str),)
        )
        post = compile_api(tree).to_dict()["paths"]["/"]["post"]
        assert post["requestBody"]["content"] == {PLAIN_TEXT: {"schema": {"type": "string"}}}
        assert post["responses"]["201"]["headers"] == {"Location": {"schema": {"type": "string"}}}
        assert "200" not in post["responses"]

    def test_no_content(self):
        responses = compile_api(Delete()).to_dict()["paths"]["/"]["delete"]["responses"]
        assert responses == {"200": {"description": ""}}


class TestSecurity:
    def test_basic_auth(self):
        tree = BasicAuth(realm="users") / Get(User)
        data = compile_api(tree).to_dict()
        assert data["paths"]["/"]["get"]["security"] == [{"basic": []}]
        assert data["components"]["securitySchemes"] == {
            "basic": {"type": "http", "scheme": "basic", "description": "users"}
        }

    def test_bearer_auth(self):
        tree = BearerAuth(bearer_format="JWT") / Get(User)
        schemes = compile_api(tree).to_dict()["components"]["securitySchemes"]
        assert schemes == {"bearer": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}}

    def test_conflicting_schemes(self):
        tree = BasicAuth(realm="a") / Get(User) | Segment("b") / BasicAuth(realm="b") / Get(User)
        with pytest.raises(StructuralConflict, match="security scheme"):
            compile_api(tree)


class TestMerge:
    def _tree(self, left, right):
        return Segment("users") / left | Segment("users") / right

    def test_methods_union(self):
        document = compile_api(self._tree(Get(list[User]), ReqBody(User) / Post(UserId)))
        assert list(document.paths["/users"].operations()) == ["get", "post"]

    def test_responses_and_tags_union_right_wins(self):
        left = Get(User, tags=("users",), responses=(Respond(503, "left"),))
        right = Get(User, tags=("admin",), responses=(Respond(503, "right"), Respond(429, "slow down")))
        get = compile_api(self._tree(left, right)).operation("/users", "get")
        assert get.tags == ["users", "admin"]
        assert get.responses["503"].description == "right"
        assert get.responses["429"].description == "slow down"

    def test_parameter_schema_conflict(self):
        tree = self._tree(QueryParam("q", int) / Get(User), QueryParam("q", str) / Get(User))
        with pytest.raises(StructuralConflict) as exc:
            compile_api(tree)
        assert exc.value.identity == "GET /users"
        assert "different schemas" in exc.value.detail

    def test_parameter_required_conflict(self):
        tree = self._tree(QueryParam("q", int) / Get(User), QueryParam("q", int, required=True) / Get(User))
        with pytest.raises(StructuralConflict, match="required"):
            compile_api(tree)

    def test_one_sided_parameter_conflict(self):
        tree = self._tree(QueryParam("q", int) / Get(User), Get(User))
        with pytest.raises(StructuralConflict, match="only one side"):
            compile_api(tree)

    def test_request_body_conflict(self):
        tree = self._tree(ReqBody(User) / Post(), ReqBody(UserId) / Post())
        with pytest.raises(StructuralConflict, match="request body"):
            compile_api(tree)

    def test_one_sided_request_body_conflict(self):
        tree = self._tree(ReqBody(User) / Post(), Post())
        with pytest.raises(StructuralConflict, match="request body is declared on only one side"):
            compile_api(tree)

    def test_request_body_content_union(self):
        tree = self._tree(ReqBody(User) / Post(), ReqBody(User, content_types=("application/xml",)) / Post())
        body = compile_api(tree).operation("/users", "post").request_body
        assert list(body.content) == [JSON, "application/xml"]

    def test_capture_names_follow_first_spelling(self):
        tree = Segment("users") / Capture("user_id", int) / Get(User) | Segment("users") / Capture("id", int) / Delete()
        document = compile_api(tree)
        assert list(document.paths) == ["/users/{user_id}"]
        assert document.operation("/users/{user_id}", "delete").parameters[0].name == "user_id"

    def test_not_found_text_uses_first_spelling(self):
        tree = Segment("users") / Capture("user_id", int) / Get(User) | Segment("users") / Capture("id", int) / Delete()
        document = compile_api(tree)
        assert document.operation("/users/{user_id}", "delete").responses["404"].description == "`user_id` not found"

    def test_same_method_different_spelling_no_override(self):
        tree = self._tree(Capture("user_id", int) / Get(User), Capture("id", int) / Get(User))
        with capture_logs() as logs:
            get = compile_api(tree).operation("/users/{user_id}", "get")
        assert get.responses["404"].description == "`user_id` not found"
        assert [e for e in logs if e["event"] == "response_override"] == []

    def test_security_requirements_union(self):
        tree = BasicAuth() / Get(User) | BearerAuth() / Get(User)
        data = compile_api(tree).to_dict()
        assert data["paths"]["/"]["get"]["security"] == [{"basic": []}, {"bearer": []}]
        assert set(data["components"]["securitySchemes"]) == {"basic", "bearer"}

    def test_response_override_is_logged(self):
        left = Get(User, responses=(Respond(503, "left"),))
        right = Get(User, responses=(Respond(503, "right"),))
        with capture_logs() as logs:
            compile_api(self._tree(left, right))
        overrides = [e for e in logs if e["event"] == "response_override"]
        assert len(overrides) == 1
        assert overrides[0]["operation"] == "GET /users"
        assert overrides[0]["status"] == "503"
        assert (overrides[0]["replaced"], overrides[0]["description"]) == ("left", "right")


class TestAssociativity:
    def test_non_colliding(self):
        a = Segment("a") / Get(User)
        b = Segment("b") / ReqBody(User) / Post(UserId)
        c = Segment("a") / Delete()
        left = compile_api((a | b) | c).to_dict()
        right = compile_api(a | (b | c)).to_dict()
        assert left == right

    def test_colliding_last_applied_wins(self):
        a = Get(User, responses=(Respond(503, "a"),))
        b = Get(User, responses=(Respond(503, "b"),))
        c = Get(User, responses=(Respond(503, "c"),))

        def outcome(tree):
            return compile_api(tree).operation("/", "get").responses["503"].description

        assert outcome((a | b) | c) == outcome(a | (b | c)) == "c"
        assert outcome(c | (a | b)) == "b"


class TestHelpers:
    def test_path_template_ignores_capture_names(self):
        key_a, display_a, captures_a = path_template([Segment("u"), Capture("id", int)])
        key_b, display_b, captures_b = path_template([Segment("u"), Capture("user_id", int)])
        assert key_a == key_b
        assert display_a == "/u/{id}"
        assert captures_b == ("user_id",)

    def test_root_path(self):
        assert path_template([])[1] == "/"

    def test_decode_can_fail(self):
        assert decode_can_fail(int)
        assert decode_can_fail(UserId)
        assert not decode_can_fail(str)
