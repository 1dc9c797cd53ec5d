from conftest import VALID_STEP_1, VALID_STEP_2, VALID_STEP_3
from tanda.models import Group
from tanda.services.group_service import create_group_from_form
from tanda.services.rendering import GENERIC_ERROR_MESSAGE


def post_fields(client, values):
    response = client.post('/groups/create/fields', json=values)
    assert response.status_code == 200
    return response.get_json()


def walk_to_confirmation(client):
    post_fields(client, VALID_STEP_1)
    assert client.post('/groups/create/next').get_json()['current_step'] == 2
    post_fields(client, VALID_STEP_2)
    assert client.post('/groups/create/next').get_json()['current_step'] == 3
    post_fields(client, VALID_STEP_3)
    state = client.post('/groups/create/next').get_json()
    assert state['current_step'] == 4
    return state


def test_wizard_requires_login(client):
    response = client.get('/groups/create')
    assert response.status_code == 302
    assert '/login' in response.headers['Location']


def test_create_page_renders_first_step(auth_client):
    response = auth_client.get('/groups/create')
    assert response.status_code == 200
    body = response.get_data(as_text=True)
    assert 'Informacion Basica' in body
    assert 'Sugerencias Inteligentes' in body


def test_state_endpoint(auth_client):
    state = auth_client.get('/groups/create/state').get_json()
    assert state['current_step'] == 1
    assert state['status'] == 'editing'
    assert state['next_label'] == 'Continuar'
    assert state['show_previous'] is False
    assert state['suggestions']['count'] == 0


def test_field_updates_persist_between_requests(auth_client):
    post_fields(auth_client, {'name': 'Tanda del Barrio'})
    state = auth_client.get('/groups/create/state').get_json()
    assert state['values']['name'] == 'Tanda del Barrio'


def test_unknown_field_is_a_bad_request(auth_client):
    response = auth_client.post('/groups/create/fields', json={'favorite_color': 'azul'})
    assert response.status_code == 400

    response = auth_client.post('/groups/create/fields', json={'name': ['a', 'b']})
    assert response.status_code == 400


def test_blur_validation(auth_client):
    state = auth_client.post('/groups/create/validate', json={'field': 'name', 'value': 'AB'}).get_json()
    assert state['valid'] is False
    assert state['message'] == 'El nombre debe tener al menos 3 caracteres'
    assert state['errors']['name'] == state['message']


def test_invalid_step_is_blocked(auth_client):
    post_fields(auth_client, dict(VALID_STEP_1, location=''))
    response = auth_client.post('/groups/create/next')

    assert response.status_code == 422
    state = response.get_json()
    assert state['status'] == 'blocked'
    assert state['current_step'] == 1
    assert state['errors'] == {'location': 'La ubicacion debe tener al menos 3 caracteres'}


def test_previous_step(auth_client):
    post_fields(auth_client, VALID_STEP_1)
    auth_client.post('/groups/create/next')

    state = auth_client.post('/groups/create/previous').get_json()
    assert state['moved'] is True
    assert state['current_step'] == 1


def test_full_creation_flow(app, auth_client, coordinator):
    state = walk_to_confirmation(auth_client)
    assert 'L. 10,000' in state['view']
    assert state['next_label'] == 'Crear Grupo'

    post_fields(auth_client, {'accept_terms': True})
    response = auth_client.post('/groups/create/next')

    assert response.status_code == 201
    result = response.get_json()
    assert result['status'] == 'success'
    assert result['group']['name'] == 'Grupo Familiar'
    assert result['redirect'] == '/groups'
    assert result['redirect_after'] == app.config['SUCCESS_REDIRECT_SECONDS']
    assert 'Grupo Creado Exitosamente' in result['view']

    group = Group.query.one()
    assert group.id == result['group']['id']
    assert group.created_by == coordinator.id

    # The form is ready for a new group
    state = auth_client.get('/groups/create/state').get_json()
    assert state['current_step'] == 1
    assert 'name' not in state['values']

    listing = auth_client.get('/groups').get_data(as_text=True)
    assert 'Grupo Familiar' in listing


def test_failed_creation_hides_internal_error(auth_client, monkeypatch):
    def broken(fields, user_id):
        raise RuntimeError('secret-internal-detail')

    monkeypatch.setattr('tanda.routes.groups.create_group_from_form', broken)

    walk_to_confirmation(auth_client)
    post_fields(auth_client, {'accept_terms': True})
    response = auth_client.post('/groups/create/next')

    assert response.status_code == 200
    body = response.get_data(as_text=True)
    assert 'secret-internal-detail' not in body
    state = response.get_json()
    assert state['status'] == 'failure'
    assert state['current_step'] == 4
    assert GENERIC_ERROR_MESSAGE in state['view']

    state = auth_client.post('/groups/create/retry').get_json()
    assert state['status'] == 'editing'
    assert 'Grupo Familiar' in state['view']
    assert Group.query.count() == 0


def test_cancel_resets_wizard(auth_client):
    post_fields(auth_client, VALID_STEP_1)
    auth_client.post('/groups/create/next')

    state = auth_client.post('/groups/create/cancel', json={}).get_json()
    assert state['current_step'] == 1

    response = auth_client.post('/groups/create/cancel')
    assert response.status_code == 302


def test_suggestions_follow_field_changes(auth_client):
    state = post_fields(auth_client, {'contribution': '50', 'max_participants': '10'})

    suggestions = state['suggestions']
    assert suggestions['expanded'] is True
    assert suggestions['items'][0]['title'] == 'Contribución muy baja'
    assert suggestions['items'][0]['actions'][0] == {
        'label': 'Ajustar a L. 500', 'field': 'contribution', 'value': '500'
    }


def test_apply_suggestion(auth_client):
    post_fields(auth_client, {'contribution': '50', 'max_participants': '10'})

    response = auth_client.post('/groups/create/suggestions/apply',
                                json={'field': 'contribution', 'value': '500'})

    assert response.status_code == 200
    state = response.get_json()
    assert state['applied'] == 'contribution'
    assert state['values']['contribution'] == '500'
    titles = [item['title'] for item in state['suggestions']['items']]
    assert 'Contribución muy baja' not in titles


def test_apply_suggestion_rejects_bad_input(auth_client):
    response = auth_client.post('/groups/create/suggestions/apply',
                                json={'field': 'favorite_color', 'value': 'azul'})
    assert response.status_code == 400

    response = auth_client.post('/groups/create/suggestions/apply', json={'field': 'contribution'})
    assert response.status_code == 400


def test_group_list_escapes_names(auth_client, coordinator):
    fields = dict(VALID_STEP_1, **VALID_STEP_2)
    fields['name'] = '<i>Tanda</i>'
    create_group_from_form(fields, coordinator.id)

    body = auth_client.get('/groups').get_data(as_text=True)
    assert '&lt;i&gt;Tanda&lt;/i&gt;' in body


def test_next_validates_the_values_it_carries(auth_client):
    post_fields(auth_client, dict(VALID_STEP_1, name='AB'))
    outdated = auth_client.get_cookie('session').value

    state = auth_client.post('/groups/create/validate',
                             json={'field': 'name', 'value': 'Grupo Familiar'}).get_json()
    assert state['valid'] is True

    # A request that still carries the cookie from before the edit
    auth_client.set_cookie('session', outdated)
    response = auth_client.post('/groups/create/next', json=VALID_STEP_1)

    assert response.status_code == 200
    state = response.get_json()
    assert state['current_step'] == 2
    assert state['errors'] == {}

    state = auth_client.get('/groups/create/state').get_json()
    assert state['current_step'] == 2
    assert state['values']['name'] == 'Grupo Familiar'


def test_next_rejects_unknown_fields(auth_client):
    response = auth_client.post('/groups/create/next', json={'favorite_color': 'azul'})
    assert response.status_code == 400

    state = auth_client.get('/groups/create/state').get_json()
    assert state['current_step'] == 1


def test_apply_response_carries_highlight(app, auth_client):
    response = auth_client.post('/groups/create/suggestions/apply',
                                json={'field': 'max_participants', 'value': '8'})

    state = response.get_json()
    assert state['applied'] == 'max_participants'
    assert state['highlight_seconds'] == app.config['SUGGESTION_HIGHLIGHT_SECONDS']
    assert state['suggestions']['applied'] == 'max_participants'

    page = auth_client.get('/groups/create').get_data(as_text=True)
    assert 'suggestion-highlight' in page


def test_one_recompute_per_request(auth_client, monkeypatch):
    from tanda.services import suggestion_service

    calls = []
    original = suggestion_service.generate_suggestions

    def counting(values, today):
        calls.append(values)
        return original(values, today)

    monkeypatch.setattr(suggestion_service, 'generate_suggestions', counting)

    post_fields(auth_client, {
        'contribution': '1000',
        'max_participants': '10',
        'payment_frequency': 'monthly',
        'start_date': '2030-01-01',
    })

    assert len(calls) == 1


def test_overlong_values_are_rejected(auth_client):
    response = auth_client.post('/groups/create/fields', json={'rules': 'r' * 501})
    assert response.status_code == 400

    response = auth_client.post('/groups/create/validate', json={'field': 'rules', 'value': 'r' * 501})
    assert response.status_code == 400


def test_group_list_shows_status_label(auth_client, coordinator):
    create_group_from_form(dict(VALID_STEP_1, **VALID_STEP_2), coordinator.id)

    body = auth_client.get('/groups').get_data(as_text=True)
    assert 'Reclutando miembros' in body
