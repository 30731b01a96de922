# =============================================================================
# Tourbook - Pytest Fixtures Configuration
# =============================================================================

import pytest

from tourbook import create_app
from tourbook.extensions import db
from tourbook.models.user import User, Role
from tourbook.models.tour import Tour, Difficulty
from tourbook.models.review import Review

PASSWORD = 'Test1234'


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture(scope='function')
def app(tmp_path):
    """Create and configure test application with SQLite in-memory database."""
    application = create_app('testing')
    application.config['UPLOAD_FOLDER'] = str(tmp_path / 'img')

    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Test client for HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """CLI test runner."""
    return app.test_cli_runner()


# =============================================================================
# User Fixtures
# =============================================================================

@pytest.fixture
def make_user(app):
    """Factory: create a user and return its id."""
    counter = {'n': 0}

    def _make(role=Role.USER, email=None, name='Test User', password=PASSWORD, active=True):
        counter['n'] += 1
        user = User(
            name=name,
            email=email or f'{role.value}{counter["n"]}@example.com',
            role=role,
            active=active,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user.id

    return _make


@pytest.fixture
def user_id(make_user):
    return make_user(Role.USER, email='user@example.com', name='Regular User')


@pytest.fixture
def other_user_id(make_user):
    return make_user(Role.USER, email='other@example.com', name='Other User')


@pytest.fixture
def admin_id(make_user):
    return make_user(Role.ADMIN, email='admin@example.com', name='Admin User')


@pytest.fixture
def lead_guide_id(make_user):
    return make_user(Role.LEAD_GUIDE, email='lead@example.com', name='Lead Guide')


@pytest.fixture
def guide_id(make_user):
    return make_user(Role.GUIDE, email='guide@example.com', name='Tour Guide')


@pytest.fixture
def token_for(app):
    """Sign an access token for a user id."""
    def _token(user_id):
        return app.extensions['token_service'].sign_access_token(user_id)
    return _token


@pytest.fixture
def auth_header(token_for):
    """Build an Authorization header for a user id."""
    def _header(user_id):
        return {'Authorization': f'Bearer {token_for(user_id)}'}
    return _header


# =============================================================================
# Tour / Review Fixtures
# =============================================================================

@pytest.fixture
def make_tour(app):
    """Factory: create a tour and return its id."""
    def _make(name='The Forest Hiker', price=397, difficulty=Difficulty.EASY, **kwargs):
        values = {
            'duration': 5,
            'max_group_size': 25,
            'summary': 'Breathtaking hike through the Canadian Banff National Park',
            'start_dates': ['2027-04-25', '2027-07-20', '2027-10-05'],
        }
        values.update(kwargs)
        tour = Tour(name=name, price=price, difficulty=difficulty, **values)
        db.session.add(tour)
        db.session.commit()
        return tour.id

    return _make


@pytest.fixture
def tour_id(make_tour):
    return make_tour()


@pytest.fixture
def review_id(app, tour_id, user_id):
    """A 4-star review by the regular user on the default tour."""
    review = Review(review='Lovely views all week', rating=4, tour_id=tour_id, user_id=user_id)
    db.session.add(review)
    db.session.commit()
    return review.id
