import datetime
from decimal import Decimal

from app.donation_models import Donation
from app.feed import feed
from app.order_models import Order


def give(client, amount='25.00', cause='education', donor='Ann', headers=None):
    resp = client.post('/api/v1/donations', json={
        'donor_name': donor, 'amount': amount, 'cause': cause, 'payment_method': 'paypal',
    }, headers=headers or {})
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_record_donation(client):
    body = give(client, amount='70', cause='  Education ')
    assert body['id'] == 1
    assert body['amount'] == 70.0
    assert body['cause'] == 'education'
    assert body['user_id'] is None
    assert body['check_drop'] is False


def test_signed_in_donation_is_attributed(client, auth_headers, user):
    body = give(client, headers=auth_headers)
    assert body['user_id'] == user['id']


def test_invalid_donations_rejected(client):
    base = {'donor_name': 'Ann', 'amount': '10', 'cause': 'education', 'payment_method': 'paypal'}
    for bad in ({'amount': '0'}, {'amount': '-5'}, {'amount': '10.001'}, {'amount': 'lots'},
                {'cause': '   '}, {'donor_name': ''}, {'payment_method': 'cash'}):
        resp = client.post('/api/v1/donations', json={**base, **bad})
        assert resp.status_code == 422, bad


def test_new_donation_is_published(client):
    seen = []
    with feed.subscribe(seen.append):
        give(client, amount='12.50')
    assert [(e['id'], e['amount']) for e in seen] == [(1, 12.5)]


def test_list_newest_first_with_filters(client, auth_headers, user):
    give(client, cause='education')
    give(client, cause='healthcare', headers=auth_headers)
    give(client, cause='education', headers=auth_headers)

    assert [d['id'] for d in client.get('/api/v1/donations').json()] == [3, 2, 1]
    assert [d['id'] for d in client.get('/api/v1/donations', params={'cause': 'Education'}).json()] == [3, 1]
    assert [d['id'] for d in client.get('/api/v1/donations', params={'user_id': user['id']}).json()] == [3, 2]
    assert [d['id'] for d in client.get('/api/v1/donations', params={'limit': 1}).json()] == [3]


def test_totals(client):
    give(client, amount='70', cause='education')
    give(client, amount='30', cause='healthcare')
    give(client, amount='0.10', cause='education')
    give(client, amount='0.20', cause='education')

    totals = client.get('/api/v1/donations/totals').json()
    assert totals['total'] == 100.3
    assert totals['by_cause'] == {'education': 70.3, 'healthcare': 30.0}
    assert totals['today'] == 100.3
    assert totals['last_minute'] == 100.3
    assert totals['count'] == 4
    assert totals['cursor'] == 4

    scoped = client.get('/api/v1/donations/totals', params={'cause': 'healthcare'}).json()
    assert scoped['total'] == 30.0
    assert scoped['by_cause'] == {'healthcare': 30.0}


def test_series(client, db_session):
    for created_at, amount in [(datetime.datetime(2025, 9, 3), '10'), (datetime.datetime(2025, 10, 1), '5'),
                               (datetime.datetime(2025, 10, 18), '7.5')]:
        db_session.add(Donation(donor_name='x', amount=Decimal(amount), cause='education',
                                payment_method='paypal', created_at=created_at))
    db_session.commit()

    monthly = client.get('/api/v1/donations/series').json()
    assert monthly == [
        {'period': '2025-09', 'donations': 1, 'amount': 10.0, 'causes': 1},
        {'period': '2025-10', 'donations': 2, 'amount': 12.5, 'causes': 1},
    ]
    yearly = client.get('/api/v1/donations/series', params={'period': 'yearly'}).json()
    assert yearly == [{'period': '2025', 'donations': 3, 'amount': 22.5, 'causes': 1}]
    assert client.get('/api/v1/donations/series', params={'period': 'weekly'}).status_code == 422


def test_my_impact(client, auth_headers, user, db_session):
    give(client, amount='40', cause='education', headers=auth_headers)
    give(client, amount='15', cause='animals', headers=auth_headers)
    give(client, amount='99', cause='animals')  # someone else
    db_session.add(Order(user_id=user['id'], order_number='ORD-1', status='pending', payment_method='paypal',
                         subtotal=Decimal('10'), total_donation=Decimal('2'), total=Decimal('12'),
                         shipping_name='Ann', shipping_line1='1 Main St', shipping_city='Springfield',
                         shipping_state='IL', shipping_postal_code='62701', shipping_country='US'))
    db_session.commit()

    impact = client.get('/api/v1/me/impact', headers=auth_headers).json()
    assert impact['total_donated'] == 55.0
    assert impact['causes_supported'] == 2
    assert impact['orders_with_donations'] == 1
    assert [c['name'] for c in impact['causes']] == ['education', 'animals']


def test_impact_requires_sign_in(client):
    assert client.get('/api/v1/me/impact').status_code == 401
