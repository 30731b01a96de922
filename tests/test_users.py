"""
Tests for own-profile and admin user endpoints.
"""
import io
import os

from PIL import Image

from tourbook.extensions import db
from tourbook.models.review import Review
from tourbook.models.tour import Tour, recalculate_ratings
from tourbook.models.user import Role, User


class TestMe:

    def test_get_me(self, client, user_id, auth_header):
        resp = client.get('/api/v1/users/me', headers=auth_header(user_id))
        assert resp.status_code == 200
        user = resp.get_json()['data']['data']
        assert user['id'] == user_id
        assert user['email'] == 'user@example.com'
        assert 'password_hash' not in user
        assert 'password_reset_token' not in user

    def test_update_me(self, client, user_id, auth_header):
        resp = client.patch(
            '/api/v1/users/update-me',
            json={'name': 'Renamed User', 'email': 'NEW@example.com', 'role': 'admin'},
            headers=auth_header(user_id),
        )
        assert resp.status_code == 200
        user = resp.get_json()['data']['user']
        assert user['name'] == 'Renamed User'
        assert user['email'] == 'new@example.com'
        assert user['role'] == 'user'

    def test_update_me_rejects_password(self, client, user_id, auth_header):
        resp = client.patch(
            '/api/v1/users/update-me',
            json={'password': 'Changed123', 'passwordConfirm': 'Changed123'},
            headers=auth_header(user_id),
        )
        assert resp.status_code == 400
        assert 'not for password updates' in resp.get_json()['message']

    def test_update_me_invalid_email(self, client, user_id, auth_header):
        resp = client.patch(
            '/api/v1/users/update-me',
            json={'email': 'not-an-email'},
            headers=auth_header(user_id),
        )
        assert resp.status_code == 400

    def test_update_me_photo(self, app, client, user_id, auth_header):
        buffer = io.BytesIO()
        Image.new('RGB', (800, 600), color='blue').save(buffer, 'PNG')
        buffer.seek(0)

        resp = client.patch(
            '/api/v1/users/update-me',
            data={'name': 'Photo User', 'photo': (buffer, 'me.png', 'image/png')},
            content_type='multipart/form-data',
            headers=auth_header(user_id),
        )
        assert resp.status_code == 200
        user = resp.get_json()['data']['user']
        assert user['name'] == 'Photo User'
        assert user['photo'].startswith(f'user-{user_id}-')

        stored = os.path.join(app.config['UPLOAD_FOLDER'], 'users', user['photo'])
        with Image.open(stored) as image:
            assert image.size == (500, 500)
            assert image.format == 'JPEG'

    def test_delete_me_deactivates(self, app, client, user_id, auth_header):
        headers = auth_header(user_id)
        resp = client.delete('/api/v1/users/delete-me', headers=headers)
        assert resp.status_code == 204

        db.session.expire_all()
        user = db.session.get(User, user_id)
        assert user is not None
        assert user.active is False

        assert client.get('/api/v1/users/me', headers=headers).status_code == 401
        login = app.test_client().post(
            '/api/v1/auth/login', json={'email': 'user@example.com', 'password': 'Test1234'},
        )
        assert login.status_code == 401


class TestAdminUsers:

    def test_list_hides_inactive_users(self, client, admin_id, make_user, auth_header):
        make_user(email='inactive@example.com', active=False)
        resp = client.get('/api/v1/users', headers=auth_header(admin_id))
        emails = [user['email'] for user in resp.get_json()['data']['data']]
        assert 'admin@example.com' in emails
        assert 'inactive@example.com' not in emails

    def test_filter_by_role(self, client, admin_id, guide_id, user_id, auth_header):
        resp = client.get('/api/v1/users?role=guide', headers=auth_header(admin_id))
        assert [user['id'] for user in resp.get_json()['data']['data']] == [guide_id]

    def test_get_user(self, client, admin_id, user_id, auth_header):
        resp = client.get(f'/api/v1/users/{user_id}', headers=auth_header(admin_id))
        assert resp.status_code == 200
        assert resp.get_json()['data']['data']['email'] == 'user@example.com'

    def test_admin_changes_role(self, client, admin_id, user_id, auth_header):
        resp = client.patch(
            f'/api/v1/users/{user_id}',
            json={'role': 'guide'},
            headers=auth_header(admin_id),
        )
        assert resp.status_code == 200
        assert db.session.get(User, user_id).role == Role.GUIDE

    def test_admin_cannot_set_password(self, client, admin_id, user_id, auth_header):
        resp = client.patch(
            f'/api/v1/users/{user_id}',
            json={'password': 'Changed123'},
            headers=auth_header(admin_id),
        )
        assert resp.status_code == 400

    def test_admin_deletes_user(self, client, admin_id, user_id, auth_header):
        resp = client.delete(f'/api/v1/users/{user_id}', headers=auth_header(admin_id))
        assert resp.status_code == 204
        assert db.session.get(User, user_id) is None

    def test_deleting_user_refreshes_tour_ratings(self, client, admin_id, user_id, other_user_id,
                                                  tour_id, auth_header):
        db.session.add_all([
            Review(review='Not for me at all', rating=1, tour_id=tour_id, user_id=user_id),
            Review(review='Best week of the year', rating=5, tour_id=tour_id, user_id=other_user_id),
        ])
        db.session.flush()
        recalculate_ratings(tour_id)
        db.session.commit()
        assert db.session.get(Tour, tour_id).ratings_quantity == 2

        resp = client.delete(f'/api/v1/users/{user_id}', headers=auth_header(admin_id))
        assert resp.status_code == 204

        db.session.expire_all()
        tour = db.session.get(Tour, tour_id)
        assert len(tour.reviews) == 1
        assert tour.ratings_quantity == 1
        assert tour.ratings_average == 5.0

    def test_create_user_points_to_signup(self, client, admin_id, auth_header):
        resp = client.post('/api/v1/users', json={}, headers=auth_header(admin_id))
        assert resp.status_code == 400
        assert '/auth/signup' in resp.get_json()['message']
