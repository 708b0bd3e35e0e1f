from employee_space.extensions import db
from employee_space.services import notification_service


def notify(user, title="Heads up"):
    notification = notification_service.create_notification(
        user_id=user.id, type="info", title=title, message="Something happened", metadata={"k": "v"}
    )
    db.session.commit()
    return notification


def test_list_returns_undismissed_newest_first(employee):
    first = notify(employee, "first")
    second = notify(employee, "second")

    listed = notification_service.list_notifications(employee.id)

    assert [n.id for n in listed] == [second.id, first.id]
    assert listed[0].to_dict()["metadata"] == {"k": "v"}


def test_dismiss_hides_notification(employee):
    notification = notify(employee)

    result = notification_service.dismiss_notification(notification.id, user_id=employee.id)

    assert result.success
    assert result.message == "Notification dismissed"
    assert notification_service.list_notifications(employee.id) == []


def test_cannot_dismiss_someone_elses(employee, other_employee):
    notification = notify(employee)

    result = notification_service.dismiss_notification(notification.id, user_id=other_employee.id)

    assert result.error == "not_authorized"
    assert len(notification_service.list_notifications(employee.id)) == 1


def test_dismiss_unknown(employee):
    assert notification_service.dismiss_notification(5555, user_id=employee.id).error == "not_found"
