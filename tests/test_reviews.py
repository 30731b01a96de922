"""
Tests for review endpoints and the tour rating aggregate.
"""
from tourbook.extensions import db
from tourbook.models.tour import Tour


def post_review(client, headers, tour_id, rating=5, text='Amazing trip!'):
    return client.post(
        f'/api/v1/tours/{tour_id}/reviews',
        json={'review': text, 'rating': rating},
        headers=headers,
    )


def tour_ratings(tour_id):
    db.session.expire_all()
    tour = db.session.get(Tour, tour_id)
    return tour.ratings_average, tour.ratings_quantity


class TestCreateReview:

    def test_create_on_nested_route(self, client, tour_id, user_id, auth_header):
        resp = post_review(client, auth_header(user_id), tour_id)
        assert resp.status_code == 201
        review = resp.get_json()['data']['data']
        assert review['tour_id'] == tour_id
        assert review['user_id'] == user_id
        assert review['rating'] == 5

    def test_author_comes_from_caller(self, client, tour_id, user_id, other_user_id, auth_header):
        resp = client.post(
            f'/api/v1/tours/{tour_id}/reviews',
            json={'review': 'Pretending', 'rating': 1, 'user_id': other_user_id},
            headers=auth_header(user_id),
        )
        assert resp.status_code == 201
        assert resp.get_json()['data']['data']['user_id'] == user_id

    def test_create_on_top_level_route(self, client, tour_id, user_id, auth_header):
        resp = client.post(
            '/api/v1/reviews',
            json={'review': 'Great guides', 'rating': 4, 'tour_id': tour_id},
            headers=auth_header(user_id),
        )
        assert resp.status_code == 201
        assert resp.get_json()['data']['data']['tour_id'] == tour_id

    def test_create_without_tour(self, client, user_id, auth_header):
        resp = client.post(
            '/api/v1/reviews',
            json={'review': 'Where was this?', 'rating': 4},
            headers=auth_header(user_id),
        )
        assert resp.status_code == 400
        assert resp.get_json()['message'] == 'A review must belong to a tour.'

    def test_create_for_missing_tour(self, client, user_id, auth_header):
        resp = post_review(client, auth_header(user_id), 9999)
        assert resp.status_code == 404

    def test_rating_out_of_range(self, client, tour_id, user_id, auth_header):
        resp = post_review(client, auth_header(user_id), tour_id, rating=6)
        assert resp.status_code == 400

    def test_one_review_per_tour_and_user(self, client, tour_id, user_id, auth_header):
        headers = auth_header(user_id)
        assert post_review(client, headers, tour_id).status_code == 201

        resp = post_review(client, headers, tour_id, rating=1)
        assert resp.status_code == 400
        assert resp.get_json()['message'] == 'Duplicate field value: tour_id, user_id. Please use another value!'
        assert tour_ratings(tour_id) == (5.0, 1)

    def test_guides_cannot_review(self, client, tour_id, lead_guide_id, auth_header):
        resp = post_review(client, auth_header(lead_guide_id), tour_id)
        assert resp.status_code == 403

    def test_requires_login(self, client, tour_id):
        resp = client.post(f'/api/v1/tours/{tour_id}/reviews', json={'review': 'x', 'rating': 3})
        assert resp.status_code == 401


class TestRatingAggregate:

    def test_ratings_follow_review_writes(self, client, tour_id, user_id, other_user_id, admin_id, auth_header):
        assert tour_ratings(tour_id) == (4.5, 0)

        first = post_review(client, auth_header(user_id), tour_id, rating=5)
        assert tour_ratings(tour_id) == (5.0, 1)

        post_review(client, auth_header(other_user_id), tour_id, rating=2)
        assert tour_ratings(tour_id) == (3.5, 2)

        review_id = first.get_json()['data']['data']['id']
        resp = client.patch(
            f'/api/v1/reviews/{review_id}',
            json={'rating': 3},
            headers=auth_header(user_id),
        )
        assert resp.status_code == 200
        assert tour_ratings(tour_id) == (2.5, 2)

        client.delete(f'/api/v1/reviews/{review_id}', headers=auth_header(admin_id))
        assert tour_ratings(tour_id) == (2.0, 1)

    def test_average_rounded_to_one_decimal(self, client, tour_id, make_user, auth_header):
        for rating in (5, 4, 4):
            post_review(client, auth_header(make_user()), tour_id, rating=rating)
        assert tour_ratings(tour_id) == (4.3, 3)

    def test_last_review_deleted_resets_defaults(self, client, tour_id, user_id, auth_header):
        created = post_review(client, auth_header(user_id), tour_id, rating=1)
        review_id = created.get_json()['data']['data']['id']

        resp = client.delete(f'/api/v1/tours/{tour_id}/reviews/{review_id}', headers=auth_header(user_id))
        assert resp.status_code == 204
        assert tour_ratings(tour_id) == (4.5, 0)


class TestReviewAccess:

    def test_list_scoped_to_tour(self, client, make_tour, user_id, auth_header):
        first = make_tour('The Forest Hiker')
        second = make_tour('The Sea Explorer')
        headers = auth_header(user_id)
        post_review(client, headers, first)
        post_review(client, headers, second)

        scoped = client.get(f'/api/v1/tours/{first}/reviews', headers=headers)
        assert scoped.status_code == 200
        assert [r['tour_id'] for r in scoped.get_json()['data']['data']] == [first]

        everything = client.get('/api/v1/reviews', headers=headers)
        assert everything.get_json()['results'] == 2

    def test_list_filters(self, client, tour_id, make_user, auth_header):
        for rating in (5, 2):
            post_review(client, auth_header(make_user()), tour_id, rating=rating)
        resp = client.get('/api/v1/reviews?rating[gte]=4', headers=auth_header(make_user()))
        assert [r['rating'] for r in resp.get_json()['data']['data']] == [5]

    def test_list_requires_login(self, client):
        assert client.get('/api/v1/reviews').status_code == 401

    def test_get_review_under_wrong_tour(self, client, make_tour, review_id, user_id, auth_header):
        other = make_tour('The Sea Explorer')
        resp = client.get(f'/api/v1/tours/{other}/reviews/{review_id}', headers=auth_header(user_id))
        assert resp.status_code == 404

    def test_other_user_cannot_edit(self, client, review_id, other_user_id, auth_header):
        resp = client.patch(
            f'/api/v1/reviews/{review_id}',
            json={'rating': 1},
            headers=auth_header(other_user_id),
        )
        assert resp.status_code == 403

        resp = client.delete(f'/api/v1/reviews/{review_id}', headers=auth_header(other_user_id))
        assert resp.status_code == 403

    def test_review_cannot_move_tours(self, client, make_tour, tour_id, review_id, user_id, auth_header):
        other = make_tour('The Sea Explorer')
        resp = client.patch(
            f'/api/v1/reviews/{review_id}',
            json={'tour_id': other, 'review': 'Edited'},
            headers=auth_header(user_id),
        )
        assert resp.status_code == 200
        review = resp.get_json()['data']['data']
        assert review['tour_id'] == tour_id
        assert review['review'] == 'Edited'
