from fastapi.testclient import TestClient

from conftest import unique_email
from quizcraft.config import settings
from quizcraft.main import app

client = TestClient(app)


def _register_and_login(password="pass123"):
    email = unique_email("auth")
    r = client.post('/auth/register', json={'name': 'Test User', 'email': email, 'password': password})
    assert r.status_code == 200
    r = client.post('/auth/login', json={'email': email, 'password': password})
    assert r.status_code == 200
    return email, r.json()['access_token']


def test_health_and_request_id():
    r = client.get('/health')
    assert r.status_code == 200
    assert r.json() == {'status': 'ok'}
    r = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert r.headers['X-Request-ID'] == 'abc123'


def test_register_login_and_me():
    email, token = _register_and_login()
    r = client.get('/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert r.status_code == 200
    assert r.json()['email'] == email
    assert r.json()['name'] == 'Test User'


def test_register_validation_and_duplicates():
    email = unique_email("dup")
    r = client.post('/auth/register', json={'name': 'Ann', 'email': email, 'password': 'pw'})
    assert r.status_code == 200
    r = client.post('/auth/register', json={'name': 'Ann', 'email': email.upper(), 'password': 'pw'})
    assert r.status_code == 409
    r = client.post('/auth/register', json={'name': 'Ann', 'email': 'not-an-email', 'password': 'pw'})
    assert r.status_code == 400
    assert r.json()['detail'] == 'A valid email is required'


def test_login_rejects_bad_credentials():
    email, _ = _register_and_login("right")
    r = client.post('/auth/login', json={'email': email, 'password': 'wrong'})
    assert r.status_code == 401
    r = client.post('/auth/login', json={'email': 'nobody@example.com', 'password': 'x'})
    assert r.status_code == 401


def test_session_cookie_is_set_and_cleared():
    email = unique_email("cookie")
    with TestClient(app) as c:
        c.post('/auth/register', json={'name': 'Cookie', 'email': email, 'password': 'pw'})
        r = c.post('/auth/login', json={'email': email, 'password': 'pw'})
        assert settings.MAIN_SESSION_COOKIE in r.headers['set-cookie']
        assert 'httponly' in r.headers['set-cookie'].lower()
        assert c.get('/auth/me').status_code == 200
        r = c.post('/auth/logout')
        assert r.status_code == 200
        assert settings.MAIN_SESSION_COOKIE in r.headers['set-cookie']


def test_missing_or_tampered_token_is_rejected():
    with TestClient(app) as c:
        assert c.get('/auth/me').status_code == 401
        assert c.get('/dashboard/quizzes').status_code == 401
        r = c.get('/auth/me', headers={'Authorization': 'Bearer not.a.token'})
        assert r.status_code == 401
    _, token = _register_and_login()
    r = client.get('/auth/me', headers={'Authorization': f'Bearer {token[:-2]}xx'})
    assert r.status_code == 401


def test_quiz_session_is_isolated_from_main_session():
    email = unique_email("player")
    r = client.post('/quiz-auth/login', json={'email': email, 'name': 'Player One'})
    assert r.status_code == 200
    assert settings.QUIZ_SESSION_COOKIE in r.headers['set-cookie']
    quiz_token = r.json()['access_token']

    me = client.get('/quiz-auth/me', headers={'Authorization': f'Bearer {quiz_token}'})
    assert me.status_code == 200
    assert me.json() == {'id': email, 'email': email, 'name': 'Player One'}

    # a quiz token never unlocks the dashboard
    assert client.get('/auth/me', headers={'Authorization': f'Bearer {quiz_token}'}).status_code == 401
    assert client.get('/dashboard/quizzes', headers={'Authorization': f'Bearer {quiz_token}'}).status_code == 401

    # and a creator token is not a quiz session
    _, main_token = _register_and_login()
    assert client.get('/quiz-auth/me', headers={'Authorization': f'Bearer {main_token}'}).status_code == 401

    r = client.post('/quiz-auth/login', json={'email': 'nope'})
    assert r.status_code == 400
    client.cookies.clear()
