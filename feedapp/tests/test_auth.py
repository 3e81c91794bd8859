import pytest

from feedapp.auth import decode_token


@pytest.mark.asyncio
async def test_signup_and_login(client):
    r = await client.put('/auth/signup', json={'email': 'ana@example.com', 'name': 'Ana', 'password': 'hunter22'})
    assert r.status_code == 201, r.text
    assert r.json()['message'] == 'User created!'
    user_id = r.json()['userId']

    login = await client.post('/auth/login', json={'email': 'ana@example.com', 'password': 'hunter22'})
    assert login.status_code == 200, login.text
    body = login.json()
    assert body['userId'] == user_id
    payload = decode_token(body['token'])
    assert payload['id'] == user_id
    assert payload['email'] == 'ana@example.com'


@pytest.mark.asyncio
async def test_signup_rejects_duplicate_email(client):
    data = {'email': 'ana@example.com', 'name': 'Ana', 'password': 'hunter22'}
    assert (await client.put('/auth/signup', json=data)).status_code == 201

    again = await client.put('/auth/signup', json=data)
    assert again.status_code == 422
    assert again.json()['data'][0]['field'] == 'email'


@pytest.mark.asyncio
async def test_signup_validates_fields(client):
    r = await client.put('/auth/signup', json={'email': 'not-an-email', 'name': 'Ana', 'password': '123'})
    assert r.status_code == 422
    body = r.json()
    assert body['message'] == 'Validation failed.'
    fields = {e['field'] for e in body['data']}
    assert {'body.email', 'body.password'} <= fields


@pytest.mark.asyncio
async def test_login_with_wrong_password(client):
    await client.put('/auth/signup', json={'email': 'ana@example.com', 'name': 'Ana', 'password': 'hunter22'})

    r = await client.post('/auth/login', json={'email': 'ana@example.com', 'password': 'nope!'})
    assert r.status_code == 401
    assert r.json()['message'] == 'Wrong email or password.'
