from .visit_change_notifier import VisitChangeNotifier
