def test_health(client):
    res = client.get('/health')
    assert res.status_code == 200
    assert res.get_data(as_text=True) == 'OK'


def test_index_reports_sessions(client, sio_client):
    sio_client.emit('join_session', {'session_id': 'ABCD'}, namespace='/ws')
    res = client.get('/')
    assert res.status_code == 200
    data = res.get_json()
    assert data['status'] == 'running'
    assert data['namespace'] == '/ws'
    assert data['sessions'] == 1


def test_catalog_stats_command(flask_app):
    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=['catalog-stats'])
    assert result.exit_code == 0
    assert 'Europe' in result.output
    assert 'Clue order: region, population' in result.output
