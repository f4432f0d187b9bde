from polypulse.core.scheduler import JobScheduler


def test_failing_job_is_recorded_and_recovers():
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise RuntimeError('market api down')

    scheduler = JobScheduler()
    scheduler.every(60, 'alerts', flaky)

    scheduler.run_job('alerts')
    scheduler.run_job('alerts')
    health = scheduler.status()['alerts']
    assert health['consecutive_failures'] == 2
    assert health['last_error'] == 'market api down'
    assert health['last_success_at'] is None

    scheduler.run_job('alerts')
    health = scheduler.status()['alerts']
    assert health['runs'] == 3
    assert health['consecutive_failures'] == 0
    assert health['last_success_at'] is not None


def test_one_failing_job_does_not_stop_others():
    ran = []

    def broken():
        raise ValueError('boom')

    scheduler = JobScheduler()
    scheduler.every(60, 'broken', broken)
    scheduler.hourly('briefings', lambda: ran.append('briefings'), minute=15)

    scheduler.run_job('broken')
    scheduler.run_job('briefings')

    assert ran == ['briefings']
    assert scheduler.status()['briefings']['consecutive_failures'] == 0


def test_registered_jobs_are_tagged():
    scheduler = JobScheduler()
    scheduler.every(30, 'whales', lambda: None, first_delay=5)
    scheduler.hourly('prediction_resolver', lambda: None, minute=15)

    assert len(scheduler.scheduler.get_jobs('whales')) == 2
    assert len(scheduler.scheduler.get_jobs('prediction_resolver')) == 1
    assert set(scheduler.status()) == {'whales', 'prediction_resolver'}
