import json

from fastapi.testclient import TestClient
from sqlmodel import Session

from conftest import mc_question, tf_question, unique_email
from quizcraft import models, services
from quizcraft.database import engine
from quizcraft.main import app
from quizcraft.utils.short_id import encode_uuid

client = TestClient(app)


def _creator_headers():
    email = unique_email("creator")
    client.post('/auth/register', json={'name': 'Creator', 'email': email, 'password': 'pw'})
    r = client.post('/auth/login', json={'email': email, 'password': 'pw'})
    return {'Authorization': f"Bearer {r.json()['access_token']}"}


def _player_headers():
    r = client.post('/quiz-auth/login', json={'email': unique_email("player"), 'name': 'Player'})
    return {'Authorization': f"Bearer {r.json()['access_token']}"}


def _create_quiz(headers, questions=None, **fields):
    form = {
        'title': 'Networking quiz',
        'description': 'Ports and protocols',
        'timer_mode': 'none',
        'questions': json.dumps(questions or [mc_question(), tf_question()]),
    }
    form.update(fields)
    return client.post('/dashboard/quizzes', data=form, headers=headers)


def test_create_list_get_and_delete_quiz():
    headers = _creator_headers()
    r = _create_quiz(headers)
    assert r.status_code == 200
    body = r.json()
    assert body['message'] == 'Quiz created successfully'
    assert body['short_id'] == encode_uuid(body['quiz_id'])

    listed = client.get('/dashboard/quizzes', headers=headers).json()
    assert [q['id'] for q in listed] == [body['quiz_id']]
    assert listed[0]['question_count'] == 2

    detail = client.get(f"/dashboard/quizzes/{body['quiz_id']}", headers=headers).json()
    assert detail['questions'][0]['choices'][0]['is_correct'] is True

    r = client.delete(f"/dashboard/quizzes/{body['quiz_id']}", headers=headers)
    assert r.json() == {'message': 'Quiz deleted successfully'}
    assert client.get(f"/dashboard/quizzes/{body['quiz_id']}", headers=headers).status_code == 404
    assert client.delete(f"/dashboard/quizzes/{body['quiz_id']}", headers=headers).status_code == 200


def test_upsert_validation_maps_to_400():
    headers = _creator_headers()
    r = _create_quiz(headers, title='')
    assert r.status_code == 400
    assert r.json()['detail'] == 'Title is required'
    r = _create_quiz(headers, timer_mode='global', timer='10')
    assert r.status_code == 400


def test_other_creators_cannot_touch_a_quiz():
    owner = _creator_headers()
    quiz_id = _create_quiz(owner).json()['quiz_id']
    intruder = _creator_headers()
    assert client.get(f'/dashboard/quizzes/{quiz_id}', headers=intruder).status_code == 403
    assert client.delete(f'/dashboard/quizzes/{quiz_id}', headers=intruder).status_code == 403
    r = client.post(f'/dashboard/quizzes/{quiz_id}/live', json={'is_live': True}, headers=intruder)
    assert r.status_code == 403
    assert client.get(f'/dashboard/reports/{quiz_id}', headers=intruder).status_code == 403


def test_public_page_follows_liveness():
    headers = _creator_headers()
    created = _create_quiz(headers).json()
    quiz_id, short_id = created['quiz_id'], created['short_id']

    page = client.get(f'/q/{short_id}').json()
    assert page['state'] == 'offline-draft'
    assert 'questions' not in page

    r = client.post(f'/dashboard/quizzes/{quiz_id}/live', json={'is_live': True}, headers=headers)
    assert r.json() == {'message': 'Quiz is now live', 'is_live': True}
    page = client.get(f'/q/{short_id}').json()
    assert page['state'] == 'taking'
    assert len(page['questions']) == 2
    assert all('is_correct' not in c for c in page['questions'][0]['choices'])

    client.post(f'/dashboard/quizzes/{quiz_id}/live', json={'is_live': False}, headers=headers)
    assert client.get(f'/q/{short_id}').json()['state'] == 'offline-paused'

    client.post(f'/dashboard/quizzes/{quiz_id}/status', json={'status': 'ended'}, headers=headers)
    assert client.get(f'/q/{short_id}').json()['state'] == 'offline-ended'

    r = client.post(f'/dashboard/quizzes/{quiz_id}/schedule',
                    json={'scheduled_at': '2099-01-01T10:00:00Z'}, headers=headers)
    assert r.status_code == 200
    page = client.get(f'/q/{short_id}').json()
    assert page['state'] == 'offline-scheduled'
    assert '2099-01-01 10:00 UTC' in page['message']


def test_public_page_unknown_ids():
    assert client.get('/q/0OIl').status_code == 404
    assert client.get(f"/q/{encode_uuid('00000000-0000-0000-0000-000000000001')}").status_code == 404


def test_attempt_flow_and_reports():
    creator = _creator_headers()
    created = _create_quiz(creator).json()
    quiz_id, short_id = created['quiz_id'], created['short_id']
    client.post(f'/dashboard/quizzes/{quiz_id}/live', json={'is_live': True}, headers=creator)
    detail = client.get(f'/dashboard/quizzes/{quiz_id}', headers=creator).json()
    mc, tf = detail['questions']
    correct_choice = next(c['id'] for c in mc['choices'] if c['is_correct'])

    player = _player_headers()
    with TestClient(app) as anonymous:
        assert anonymous.post(f'/q/{short_id}/attempts').status_code == 401
    r = client.post(f'/q/{short_id}/attempts', headers=player)
    assert r.status_code == 200
    attempt_id = r.json()['attempt']['id']

    r = client.put(f'/q/{short_id}/attempts/{attempt_id}/answers/{tf["id"]}', json={'answer': True}, headers=player)
    assert r.json() == {'message': 'Answer saved successfully'}

    r = client.post(f'/q/{short_id}/attempts/{attempt_id}/submit',
                    json={'answers': [{'question_id': mc['id'], 'answer': correct_choice}]}, headers=player)
    assert r.status_code == 200
    assert r.json()['score'] == 3
    assert r.json()['max_score'] == 3

    again = client.post(f'/q/{short_id}/attempts/{attempt_id}/submit', json={'answers': []}, headers=player)
    assert again.status_code == 409
    assert again.json()['detail'] == 'Quiz already submitted'

    view = client.get(f'/q/{short_id}/attempts/{attempt_id}', headers=player).json()['attempt']
    assert view['submitted'] is True
    assert client.get(f'/q/{short_id}/attempts/{attempt_id}', headers=_player_headers()).status_code == 403

    report = client.get(f'/dashboard/reports/{quiz_id}', headers=creator).json()
    assert report['report']['participant_count'] == 1
    assert report['report']['accuracy'] == 100.0
    assert report['report']['completion_rate'] == 100.0

    reports = client.get('/dashboard/reports', headers=creator).json()
    assert reports[0]['participant_count'] == 1

    stats = client.get('/dashboard/stats', headers=creator).json()
    assert stats == {'total_quizzes': 1, 'total_participants': 1, 'avg_accuracy': 100.0, 'completion_rate': 100.0}


def test_attempt_on_offline_quiz_is_conflict():
    creator = _creator_headers()
    short_id = _create_quiz(creator).json()['short_id']
    r = client.post(f'/q/{short_id}/attempts', headers=_player_headers())
    assert r.status_code == 409
    assert r.json()['detail'] == 'Quiz is not live'


def test_public_page_reports_quiz_session():
    short_id = _create_quiz(_creator_headers()).json()['short_id']
    with TestClient(app) as anonymous:
        assert anonymous.get(f'/q/{short_id}').json()['participant'] is None
    body = client.get(f'/q/{short_id}', headers=_player_headers()).json()
    assert body['participant']['name'] == 'Player'
    assert body['participant']['email'].startswith('player-')


def test_public_page_never_serves_a_render_older_than_a_committed_change(monkeypatch):
    headers = _creator_headers()
    created = _create_quiz(headers).json()
    quiz_id, short_id = created['quiz_id'], created['short_id']
    client.post(f'/dashboard/quizzes/{quiz_id}/live', json={'is_live': True}, headers=headers)

    original = services.public_quiz_payload
    toggled = []

    def render_then_pause(quiz, now=None):
        payload = original(quiz, now=now)
        if not toggled:
            # the creator takes the quiz offline while this render is in flight
            with Session(engine) as other:
                assert services.QuizService(other).set_quiz_live(quiz_id, False)['is_live'] is False
            toggled.append(True)
        return payload

    monkeypatch.setattr(services, 'public_quiz_payload', render_then_pause)
    assert client.get(f'/q/{short_id}').json()['state'] == 'taking'
    assert client.get(f'/q/{short_id}').json()['state'] == 'offline-paused'


def test_public_page_reflects_changes_made_outside_this_process():
    headers = _creator_headers()
    created = _create_quiz(headers).json()
    quiz_id, short_id = created['quiz_id'], created['short_id']
    assert client.get(f'/q/{short_id}').json()['state'] == 'offline-draft'

    # another worker commits without touching this process's cache
    with Session(engine) as other:
        quiz = other.get(models.Quiz, quiz_id)
        quiz.is_live = True
        quiz.status = 'active'
        quiz.updated_at = models.utcnow()
        other.add(quiz)
        other.commit()
    assert client.get(f'/q/{short_id}').json()['state'] == 'taking'


def test_edit_form_without_shuffle_keeps_setting():
    headers = _creator_headers()
    quiz_id = _create_quiz(headers, shuffle_questions='true').json()['quiz_id']
    r = _create_quiz(headers, quiz_id=quiz_id, title='Renamed quiz')
    assert r.json()['message'] == 'Quiz updated successfully'
    detail = client.get(f'/dashboard/quizzes/{quiz_id}', headers=headers).json()
    assert detail['title'] == 'Renamed quiz'
    assert detail['shuffle_questions'] is True
