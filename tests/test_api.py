"""HTTP API behaviour through the ASGI client."""

import pytest

from tests.conftest import OTHER_TENANT_ID, tenant_headers

PRO = "pro-tier"


async def _create_template(client, name="Weekly Digest", content="<h1>{{title}}</h1>", tier=PRO, **extra):
    payload = {"name": name, "content": content, **extra}
    return await client.post("/api/templates", json=payload, headers=tenant_headers(tier=tier))


async def _create_snippet(client, name="header", content="<header>{{title}}</header>", tier=PRO, **extra):
    payload = {"name": name, "content": content, **extra}
    return await client.post("/api/snippets", json=payload, headers=tenant_headers(tier=tier))


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200


async def test_missing_tenant_is_unauthorized(client):
    response = await client.get("/api/templates")

    assert response.status_code == 401
    assert response.json()["detail"] == "Tenant access required"


@pytest.mark.parametrize("tenant_id", ["../../etc", "tenant one", "a/b"])
async def test_malformed_tenant_id_is_rejected(client, tenant_id):
    response = await client.get("/api/templates", headers=tenant_headers(tenant_id))

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid tenant id"


class TestTemplateEndpoints:
    async def test_create_and_fetch(self, client):
        created = await _create_template(client, tags=["weekly"], category="news", isVisualMode=True)

        assert created.status_code == 201
        body = created.json()
        assert body["name"] == "Weekly Digest"
        assert body["isVisualMode"] is True
        assert body["version"] == 1
        assert body["content"] == "<h1>{{title}}</h1>"

        fetched = await client.get(f"/api/templates/{body['id']}", headers=tenant_headers())
        assert fetched.status_code == 200
        assert fetched.json()["tags"] == ["weekly"]

    async def test_templates_are_tenant_scoped(self, client):
        created = (await _create_template(client)).json()

        response = await client.get(f"/api/templates/{created['id']}", headers=tenant_headers(OTHER_TENANT_ID))

        assert response.status_code == 404

    async def test_free_tier_quota(self, client):
        first = await _create_template(client, name="One", tier=None)
        second = await _create_template(client, name="Two", tier=None)

        assert first.status_code == 201
        assert second.status_code == 403
        body = second.json()
        assert body["code"] == "QUOTA_EXCEEDED"
        assert body["upgradeRequired"] is True
        assert body["quota"]["limit"] == 1
        assert body["quota"]["tier"] == "free-tier"

    async def test_duplicate_name(self, client):
        await _create_template(client)

        response = await _create_template(client)

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "NAME_EXISTS"

    async def test_malformed_json(self, client):
        response = await client.post(
            "/api/templates",
            content=b"{not json",
            headers={**tenant_headers(), "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_REQUEST_FORMAT"

    async def test_request_validation_errors(self, client):
        response = await client.post(
            "/api/templates", json={"name": "bad/name", "tags": "x"}, headers=tenant_headers(tier=PRO)
        )

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "REQUEST_VALIDATION_FAILED"
        codes = {(error["field"], error["code"]) for error in body["errors"]}
        assert ("name", "PATTERN_VIOLATION") in codes
        assert ("content", "FIELD_REQUIRED") in codes
        assert ("tags", "INVALID_TYPE") in codes

    async def test_content_validation_errors(self, client):
        response = await _create_template(client, content="{{#if open}}never closed")

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "CONTENT_VALIDATION_FAILED"
        assert body["errors"][0]["code"] == "SYNTAX_ERROR"

    async def test_list_and_filter(self, client):
        await _create_template(client, name="Alpha", category="news")
        await _create_template(client, name="Beta", category="sales")

        everything = await client.get("/api/templates", headers=tenant_headers())
        news = await client.get("/api/templates", params={"category": "news"}, headers=tenant_headers())

        assert everything.json()["total"] == 2
        assert [template["name"] for template in news.json()["templates"]] == ["Alpha"]
        assert "content" not in news.json()["templates"][0]

    async def test_update_and_delete(self, client):
        created = (await _create_template(client)).json()

        updated = await client.patch(
            f"/api/templates/{created['id']}",
            json={"content": "<p>{{> footer}}</p>", "description": "Updated"},
            headers=tenant_headers(),
        )
        assert updated.status_code == 200
        assert updated.json()["version"] == 2
        assert updated.json()["snippets"] == ["footer"]

        deleted = await client.delete(f"/api/templates/{created['id']}", headers=tenant_headers())
        assert deleted.status_code == 204
        missing = await client.get(f"/api/templates/{created['id']}", headers=tenant_headers())
        assert missing.status_code == 404

    async def test_preview_stored_template_with_snippet(self, client):
        await _create_snippet(client)
        created = (await _create_template(client, content="{{> header}}<p>{{formatNumber count}}</p>")).json()

        response = await client.post(
            f"/api/templates/{created['id']}/preview",
            json={"testData": {"title": "News", "count": 1234}},
            headers=tenant_headers(),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["html"] == "<header>News</header><p>1234.00</p>"
        assert body["snippets"] == ["header"]

    async def test_preview_inline_content(self, client):
        response = await client.post(
            "/api/templates/preview",
            json={"content": "<p>{{name}}</p>", "testData": {"name": "Ada"}},
            headers=tenant_headers(),
        )

        assert response.status_code == 200
        assert response.json()["html"] == "<p>Ada</p>"

    async def test_preview_requires_email_address(self, client):
        response = await client.post(
            "/api/templates/preview",
            json={"content": "<p>x</p>", "sendTestEmail": True},
            headers=tenant_headers(),
        )

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_FAILED"
        assert body["errors"][0]["code"] == "TEST_EMAIL_REQUIRED"

    async def test_preview_inline_requires_content(self, client):
        response = await client.post("/api/templates/preview", json={}, headers=tenant_headers())

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "content"


class TestSnippetEndpoints:
    async def test_create_with_parameters(self, client):
        response = await _create_snippet(
            client,
            parameters=[{"name": "title", "type": "string", "required": True}],
        )

        assert response.status_code == 201
        assert response.json()["parameters"][0]["name"] == "title"

    async def test_duplicate_parameter_names(self, client):
        response = await _create_snippet(
            client,
            parameters=[{"name": "title", "type": "string"}, {"name": "title", "type": "number"}],
        )

        assert response.status_code == 400
        assert "DUPLICATE_PARAMETER_NAMES" in {error["code"] for error in response.json()["errors"]}

    async def test_free_tier_allows_two_snippets(self, client):
        statuses = [(await _create_snippet(client, name=f"s{index}", tier=None)).status_code for index in range(3)]

        assert statuses == [201, 201, 403]

    async def test_preview_with_parameter_checks(self, client):
        snippet = (
            await _create_snippet(
                client,
                content="<b>{{title}}</b>",
                parameters=[
                    {"name": "title", "type": "string", "required": True},
                    {"name": "count", "type": "number"},
                ],
            )
        ).json()

        ok = await client.post(
            f"/api/snippets/{snippet['id']}/preview", json={"parameters": {"title": "Hi"}}, headers=tenant_headers()
        )
        bad = await client.post(
            f"/api/snippets/{snippet['id']}/preview", json={"parameters": {"count": "x"}}, headers=tenant_headers()
        )

        assert ok.status_code == 200
        assert ok.json()["html"] == "<b>Hi</b>"
        assert bad.status_code == 400
        assert [error["code"] for error in bad.json()["errors"]] == [
            "REQUIRED_PARAMETER_MISSING",
            "INVALID_PARAMETER_TYPE",
        ]

    async def test_preview_with_empty_parameters_object(self, client):
        snippet = (
            await _create_snippet(
                client,
                content="<b>{{title}}</b>",
                parameters=[{"name": "title", "type": "string", "required": True}],
            )
        ).json()

        response = await client.post(
            f"/api/snippets/{snippet['id']}/preview", json={"parameters": {}}, headers=tenant_headers()
        )

        assert response.status_code == 400
        assert [error["field"] for error in response.json()["errors"]] == ["parameters.title"]

    async def test_usage(self, client):
        snippet = (await _create_snippet(client)).json()
        template = (await _create_template(client, content="{{> header}}<p>body</p>")).json()
        await _create_template(client, name="Unrelated", content="<p>none</p>")

        response = await client.get(f"/api/snippets/{snippet['id']}/usage", headers=tenant_headers())

        assert response.status_code == 200
        body = response.json()
        assert body["snippetName"] == "header"
        assert body["usageCount"] == 1
        assert body["templates"][0]["id"] == template["id"]

    async def test_unknown_snippet(self, client):
        response = await client.get("/api/snippets/missing", headers=tenant_headers())

        assert response.status_code == 404


class TestQuotaEndpoints:
    async def test_status_reflects_usage(self, client):
        await _create_template(client, tier=None)

        response = await client.get("/api/quota", headers=tenant_headers())

        assert response.status_code == 200
        body = response.json()
        assert body["tier"] == "free-tier"
        assert body["templates"] == {"current": 1, "limit": 1, "remaining": 0, "percentage": 100, "canCreate": False}
        assert body["overall"] == {"withinLimits": True, "nearLimit": True}

    async def test_upgrade_suggestions(self, client):
        await _create_template(client, tier=None)

        response = await client.get("/api/quota/upgrade-suggestions", headers=tenant_headers())

        body = response.json()
        assert body["hasUpgradeOptions"] is True
        assert body["suggestions"][0]["suggestedTier"] == "creator-tier"
        assert body["suggestions"][0]["reason"] == "template_limit"


class TestTransferEndpoints:
    async def test_export_then_import_into_another_tenant(self, client):
        await _create_snippet(client)
        template = (await _create_template(client, content="{{> header}}<p>{{body}}</p>")).json()

        exported = await client.post(
            "/api/templates/export", json={"templateIds": [template["id"]]}, headers=tenant_headers()
        )
        package = exported.json()
        imported = await client.post(
            "/api/templates/import",
            json={"data": package["data"], "format": "zip"},
            headers=tenant_headers(OTHER_TENANT_ID, tier=PRO),
        )

        assert exported.status_code == 200
        assert package["format"] == "zip"
        assert (package["templateCount"], package["snippetCount"]) == (1, 1)
        assert imported.status_code == 200
        assert imported.json()["summary"]["templatesImported"] == 1
        assert imported.json()["summary"]["snippetsImported"] == 1
        listed = await client.get("/api/templates", headers=tenant_headers(OTHER_TENANT_ID))
        assert [item["name"] for item in listed.json()["templates"]] == ["Weekly Digest"]

    async def test_export_request_is_validated(self, client):
        response = await client.post(
            "/api/templates/export", json={"templateIds": [], "format": "tar"}, headers=tenant_headers()
        )

        assert response.status_code == 400
        assert response.json()["code"] == "REQUEST_VALIDATION_FAILED"
        assert {error["field"] for error in response.json()["errors"]} == {"templateIds", "format"}

    async def test_export_of_unknown_ids(self, client):
        response = await client.post(
            "/api/templates/export", json={"templateIds": ["nope"], "format": "json"}, headers=tenant_headers()
        )

        assert response.status_code == 404

    async def test_import_skips_existing_names(self, client):
        await _create_template(client)
        data = {"templates": [{"name": "Weekly Digest", "content": "<p>again</p>"}], "snippets": []}

        response = await client.post("/api/templates/import", json={"data": data}, headers=tenant_headers(tier=PRO))

        assert response.status_code == 200
        assert response.json()["summary"]["templatesSkipped"] == 1

    async def test_import_without_data(self, client):
        response = await client.post("/api/templates/import", json={}, headers=tenant_headers())

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_TRANSFER"
