"""Tests for the server-rendered checkout and success pages."""


class TestCheckoutPage:
    def test_anonymous_gets_sign_in(self, client):
        r = client.get("/checkout?amount=29.99&eventId=7&title=Carnival&ticketId=3&ticketName=VIP")
        assert r.status_code == 200
        assert 'data-branch="auth_required"' in r.text
        assert "Carnival / VIP / $29.99" in r.text
        # Sign-in links carry the checkout parameters back
        assert "eventId%3D7" in r.text
        assert "ticketId%3D3" in r.text

    def test_signed_in_free_ticket(self, client, create_user, user_password):
        user = create_user()
        client.post("/api/auth/login", json={"username": user.username, "password": user_password})
        r = client.get("/checkout?amount=0&eventId=7&ticketId=3")
        assert 'data-branch="free_ticket"' in r.text
        assert "Claim Free Ticket" in r.text
        assert "Missing event or ticket information" not in r.text

    def test_free_ticket_without_ids(self, client, create_user, user_password):
        user = create_user()
        client.post("/api/auth/login", json={"username": user.username, "password": user_password})
        r = client.get("/checkout?amount=0&ticketId=3")
        assert "Missing event or ticket information" in r.text

    def test_signed_in_paid(self, client, create_user, user_password):
        user = create_user()
        client.post("/api/auth/login", json={"username": user.username, "password": user_password})
        r = client.get("/checkout?amount=29.99&eventId=7")
        assert 'data-branch="paid"' in r.text
        assert "https://cash.app/$SGEvents/29.99" in r.text

    def test_invalid_amount_is_free(self, client, create_user, user_password):
        user = create_user()
        client.post("/api/auth/login", json={"username": user.username, "password": user_password})
        r = client.get("/checkout?amount=abc&eventId=7&ticketId=3")
        assert 'data-branch="free_ticket"' in r.text


class TestSuccessPage:
    def test_shows_ticket(self, client):
        r = client.get("/payment-success?eventId=7&eventTitle=Carnival&ticketId=3&ticketName=VIP")
        assert r.status_code == 200
        assert "You're In" in r.text
        assert "Carnival" in r.text
        assert "VIP" in r.text

    def test_escapes_title(self, client):
        r = client.get("/payment-success?eventTitle=%3Cscript%3E")
        assert "<script>" not in r.text
