import io

from PIL import Image

from conftest import admin_login, create_user, csrf_from, login
from foresite.models import Industry, IndustryDetail, Post, Service, UserRole, db


def _png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color=(36, 84, 214)).save(buffer, format="PNG")
    buffer.seek(0)
    return buffer


def test_admin_pages_redirect_anonymous_users(client):
    for path in ["/admin", "/admin/posts", "/admin/services", "/admin/industries", "/admin/industries/1/sections"]:
        response = client.get(path, follow_redirects=False)
        assert response.status_code == 302, path
        assert response.headers["Location"].endswith("/auth")


def test_non_admin_user_is_denied(app, client):
    create_user(app, "viewer@example.com", "viewer-pass")
    response = login(client, "viewer@example.com", "viewer-pass")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/auth")

    response = client.get("/admin/posts", follow_redirects=True)
    html = response.get_data(as_text=True)
    assert "does not have admin access" in html
    assert "Admin sign in" in html


def test_invalid_credentials_are_rejected(client):
    response = login(client, "admin@foresite.ai", "wrong-password")
    assert response.status_code == 401
    assert "Invalid login credentials" in response.get_data(as_text=True)


def test_admin_role_is_checked_on_every_request(app, client):
    admin_login(client)
    assert client.get("/admin").status_code == 200

    with app.app_context():
        UserRole.query.filter_by(role="admin").delete()
        db.session.commit()

    response = client.get("/admin", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/auth")


def test_dashboard_shows_counts(client):
    admin_login(client)
    html = client.get("/admin").get_data(as_text=True)
    assert "News/Posts" in html
    assert "Services" in html
    assert "Industries" in html


def test_admin_post_requires_csrf_token(app, client):
    admin_login(client)
    response = client.post("/admin/posts", data={"title": "No token"}, follow_redirects=False)
    assert response.status_code == 302
    with app.app_context():
        assert Post.query.count() == 0


def test_post_crud_flow(app, client):
    admin_login(client)
    token = csrf_from(client, "/admin/posts")

    response = client.post(
        "/admin/posts",
        data={
            "_csrf_token": token,
            "title": "Launch update",
            "category": "Company",
            "summary": "We launched.",
            "content": "<p>Hello <strong>world</strong></p><script>alert(1)</script>",
            "image_url": "",
        },
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/admin/posts")

    with app.app_context():
        post = Post.query.one()
        post_id = post.id
        assert "<script>" not in post.content
        assert "<strong>world</strong>" in post.content
        assert post.created_by is not None

    listing = client.get("/admin/posts").get_data(as_text=True)
    assert listing.count("Launch update") == 1
    assert "Post created successfully." in listing

    detail = client.get(f"/news/{post_id}")
    assert detail.status_code == 200
    assert "<strong>world</strong>" in detail.get_data(as_text=True)

    edit_page = client.get(f"/admin/posts?edit={post_id}").get_data(as_text=True)
    assert f'action="/admin/posts/{post_id}"' in edit_page
    token = csrf_from(client, "/admin/posts")
    response = client.post(
        f"/admin/posts/{post_id}",
        data={
            "_csrf_token": token,
            "title": "Launch update (revised)",
            "category": "Company",
            "summary": "We launched again.",
            "content": "",
            "image_url": "",
        },
    )
    assert response.status_code == 302
    with app.app_context():
        assert Post.query.count() == 1
        assert db.session.get(Post, post_id).title == "Launch update (revised)"

    confirm = client.get(f"/admin/posts/{post_id}/delete")
    assert confirm.status_code == 200
    assert "Are you sure" in confirm.get_data(as_text=True)

    token = csrf_from(client, "/admin/posts")
    response = client.post(f"/admin/posts/{post_id}/delete", data={"_csrf_token": token})
    assert response.status_code == 200
    with app.app_context():
        assert Post.query.count() == 1

    response = client.post(f"/admin/posts/{post_id}/delete", data={"_csrf_token": token, "confirm": "yes"})
    assert response.status_code == 302
    with app.app_context():
        assert Post.query.count() == 0
    assert client.get(f"/news/{post_id}").status_code == 404


def test_validation_errors_keep_entered_values(app, client):
    admin_login(client)
    token = csrf_from(client, "/admin/posts")
    response = client.post(
        "/admin/posts",
        data={"_csrf_token": token, "title": "", "category": "Research", "summary": "Draft summary text"},
    )
    assert response.status_code == 400
    html = response.get_data(as_text=True)
    assert "Title is required." in html
    assert "Draft summary text" in html
    with app.app_context():
        assert Post.query.count() == 0


def test_service_features_drop_blanks_and_keep_order(app, client):
    admin_login(client)
    token = csrf_from(client, "/admin/services")
    response = client.post(
        "/admin/services",
        data={
            "_csrf_token": token,
            "title": "Predictive Maintenance",
            "icon": "Wrench",
            "description": "Catch failures early.",
            "features": ["Sensor ingestion", "", "Failure forecasting", "   ", "Alerting"],
        },
    )
    assert response.status_code == 302
    with app.app_context():
        service = Service.query.filter_by(title="Predictive Maintenance").one()
        assert service.features == ["Sensor ingestion", "Failure forecasting", "Alerting"]
        assert service.icon == "Wrench"
        service_id = service.id

    page = client.get(f"/admin/services?edit={service_id}").get_data(as_text=True)
    assert page.count('name="features"') == 4
    assert 'value="Failure forecasting"' in page


def test_industry_slug_and_sections(app, client):
    admin_login(client)
    token = csrf_from(client, "/admin/industries")
    response = client.post(
        "/admin/industries",
        data={"_csrf_token": token, "name": "Renewable Energy", "icon": "Sparkles", "description": "Wind and solar."},
    )
    assert response.status_code == 302
    with app.app_context():
        industry = Industry.query.filter_by(slug="renewable-energy").one()
        industry_id = industry.id

    duplicate = client.post(
        "/admin/industries",
        data={"_csrf_token": token, "name": "Renewable  energy", "icon": "Factory", "description": "Again."},
    )
    assert duplicate.status_code == 400
    assert "already uses this name" in duplicate.get_data(as_text=True)

    sections_url = f"/admin/industries/{industry_id}/sections"
    token = csrf_from(client, sections_url)
    for title, order in (("Grid balancing", "2"), ("Forecasting output", "1")):
        response = client.post(
            sections_url,
            data={"_csrf_token": token, "section_title": title, "content": f"{title} details", "order_index": order},
        )
        assert response.status_code == 302

    html = client.get("/industries/renewable-energy").get_data(as_text=True)
    assert html.index("Forecasting output") < html.index("Grid balancing")

    token = csrf_from(client, "/admin/industries")
    response = client.post(
        f"/admin/industries/{industry_id}/delete",
        data={"_csrf_token": token, "confirm": "yes"},
    )
    assert response.status_code == 302
    with app.app_context():
        assert db.session.get(Industry, industry_id) is None
        assert IndustryDetail.query.filter_by(industry_id=industry_id).count() == 0


def test_sections_for_missing_industry_return_404(client):
    admin_login(client)
    assert client.get("/admin/industries/99999/sections").status_code == 404


def test_image_upload_is_staged_then_saved(app, client):
    admin_login(client)
    token = csrf_from(client, "/admin/posts")
    response = client.post(
        "/admin/posts",
        data={
            "_csrf_token": token,
            "title": "Photo post",
            "category": "Gallery",
            "summary": "Has a picture.",
            "action": "upload",
            "image_url": "",
            "image_url_file": (_png_bytes(), "site photo.PNG", "image/png"),
        },
        content_type="multipart/form-data",
    )
    assert response.status_code == 200
    html = response.get_data(as_text=True)
    assert "Image uploaded successfully." in html
    assert 'value="Photo post"' in html
    with app.app_context():
        assert Post.query.count() == 0

    marker = 'name="image_url" value="'
    start = html.index(marker) + len(marker)
    image_url = html[start:html.index('"', start)]
    assert image_url.startswith("/storage/content-images/posts/")
    assert image_url.endswith(".png")

    stored = client.get(image_url)
    assert stored.status_code == 200
    assert stored.data.startswith(b"\x89PNG")

    response = client.post(
        "/admin/posts",
        data={
            "_csrf_token": token,
            "title": "Photo post",
            "category": "Gallery",
            "summary": "Has a picture.",
            "image_url": image_url,
        },
    )
    assert response.status_code == 302
    with app.app_context():
        assert Post.query.one().image_url == image_url


def test_upload_rejects_non_images(app, client):
    admin_login(client)
    token = csrf_from(client, "/admin/industries")
    response = client.post(
        "/admin/industries",
        data={
            "_csrf_token": token,
            "name": "Textiles",
            "icon": "Factory",
            "description": "Looms.",
            "action": "upload",
            "image_url_file": (io.BytesIO(b"not an image"), "fake.png", "image/png"),
        },
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert "Error uploading image" in response.get_data(as_text=True)
    with app.app_context():
        assert Industry.query.filter_by(name="Textiles").count() == 0


def test_image_url_must_come_from_upload(app, client):
    admin_login(client)
    token = csrf_from(client, "/admin/posts")
    response = client.post(
        "/admin/posts",
        data={
            "_csrf_token": token,
            "title": "Tracked post",
            "category": "News",
            "summary": "Carries an outside image.",
            "image_url": "https://tracker.example/pixel.gif",
        },
    )
    assert response.status_code == 400
    html = response.get_data(as_text=True)
    assert "Image must be uploaded through this form." in html
    assert "tracker.example" not in html
    with app.app_context():
        assert Post.query.count() == 0

    token = csrf_from(client, "/admin/industries")
    response = client.post(
        "/admin/industries",
        data={
            "_csrf_token": token,
            "name": "Aerospace",
            "icon": "Sparkles",
            "description": "Flight systems.",
            "image_url": "/storage/content-images/posts/borrowed.png",
        },
    )
    assert response.status_code == 400
    with app.app_context():
        assert Industry.query.filter_by(name="Aerospace").count() == 0


def test_service_update_drops_blank_features(app, client):
    admin_login(client)
    with app.app_context():
        service = Service.query.filter_by(title="Training & Education").one()
        service_id = service.id
        service_count = Service.query.count()

    token = csrf_from(client, f"/admin/services?edit={service_id}")
    response = client.post(
        f"/admin/services/{service_id}",
        data={
            "_csrf_token": token,
            "title": "Training & Enablement",
            "icon": "GraduationCap",
            "description": "Workshops for every team.",
            "features": ["", "Workshops", " ", "Office hours"],
        },
    )
    assert response.status_code == 302
    with app.app_context():
        assert Service.query.count() == service_count
        service = db.session.get(Service, service_id)
        assert service.title == "Training & Enablement"
        assert service.features == ["Workshops", "Office hours"]

    html = client.get("/services").get_data(as_text=True)
    assert html.count("Training &amp; Enablement") == 1
    assert "Training &amp; Education" not in html

    token = csrf_from(client, "/admin/services")
    response = client.post(f"/admin/services/{service_id}/delete", data={"_csrf_token": token, "confirm": "yes"})
    assert response.status_code == 302
    with app.app_context():
        assert db.session.get(Service, service_id) is None
    assert client.get(f"/services/{service_id}").status_code == 404


def test_industry_rename_regenerates_slug(app, client):
    admin_login(client)
    with app.app_context():
        industry_id = Industry.query.filter_by(slug="retail").one().id

    token = csrf_from(client, "/admin/industries")
    response = client.post(
        f"/admin/industries/{industry_id}",
        data={"_csrf_token": token, "name": "Retail & E-commerce", "icon": "ShoppingCart", "description": "Stores."},
    )
    assert response.status_code == 302
    with app.app_context():
        assert db.session.get(Industry, industry_id).slug == "retail-e-commerce"
    assert client.get("/industries/retail-e-commerce").status_code == 200
    assert client.get("/industries/retail").status_code == 404

    response = client.post(
        f"/admin/industries/{industry_id}",
        data={"_csrf_token": token, "name": "Mining", "icon": "ShoppingCart", "description": "Stores."},
    )
    assert response.status_code == 400
    assert "already uses this name" in response.get_data(as_text=True)
    with app.app_context():
        assert db.session.get(Industry, industry_id).name == "Retail & E-commerce"
        assert Industry.query.filter_by(slug="mining").count() == 1


def test_industry_section_update_delete_and_parent_scoping(app, client):
    admin_login(client)
    with app.app_context():
        finance_id = Industry.query.filter_by(slug="finance").one().id
        health_id = Industry.query.filter_by(slug="healthcare").one().id

    sections_url = f"/admin/industries/{finance_id}/sections"
    token = csrf_from(client, sections_url)
    response = client.post(
        sections_url,
        data={"_csrf_token": token, "section_title": "Fraud detection", "content": "Models.", "order_index": "0"},
    )
    assert response.status_code == 302
    with app.app_context():
        section_id = IndustryDetail.query.filter_by(industry_id=finance_id).one().id

    response = client.post(
        f"{sections_url}/{section_id}",
        data={"_csrf_token": token, "section_title": "Fraud and risk", "content": "Better models.", "order_index": "3"},
    )
    assert response.status_code == 302
    with app.app_context():
        assert IndustryDetail.query.filter_by(industry_id=finance_id).count() == 1
        section = db.session.get(IndustryDetail, section_id)
        assert (section.section_title, section.content, section.order_index) == ("Fraud and risk", "Better models.", 3)
    assert "Fraud and risk" in client.get("/industries/finance").get_data(as_text=True)

    other_url = f"/admin/industries/{health_id}/sections/{section_id}"
    assert client.post(
        other_url,
        data={"_csrf_token": token, "section_title": "Moved", "content": "x", "order_index": "0"},
    ).status_code == 404
    assert client.get(f"{other_url}/delete").status_code == 404
    assert client.post(f"{other_url}/delete", data={"_csrf_token": token, "confirm": "yes"}).status_code == 404
    with app.app_context():
        section = db.session.get(IndustryDetail, section_id)
        assert section.industry_id == finance_id
        assert section.section_title == "Fraud and risk"

    response = client.post(f"{sections_url}/{section_id}/delete", data={"_csrf_token": token, "confirm": "yes"})
    assert response.status_code == 302
    assert response.headers["Location"].endswith(sections_url)
    with app.app_context():
        assert db.session.get(IndustryDetail, section_id) is None
    assert "Fraud and risk" not in client.get("/industries/finance").get_data(as_text=True)
