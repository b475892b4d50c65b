from hibalogique.services.notices import Notice


def test_show_schedules_dismissal(notices, scheduler):
    notices.show("Saved.", "success")
    assert notices.current == Notice("Saved.", "success")
    assert len(scheduler.timers) == 1
    assert scheduler.timers[0].delay == 3.5

    scheduler.timers[0].fire()
    assert notices.current is None


def test_new_notice_cancels_previous_timer(notices, scheduler):
    notices.show("first")
    notices.show("second", "error")

    first, second = scheduler.timers
    assert first.cancelled
    assert not second.cancelled

    # a late first timer cannot wipe the second notice
    first.callback()
    assert notices.current == Notice("second", "error")

    second.fire()
    assert notices.current is None


def test_dismiss(notices, scheduler):
    notices.show("bye")
    notices.dismiss()
    assert notices.current is None
    assert scheduler.timers[0].cancelled
