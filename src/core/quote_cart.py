"""
Quote cart — per-visitor selection + contact form state.

ServiceSelection   ordered set of chosen catalog service ids
ContactForm        the contact / project fields, edited one field at a time
QuoteIntakeSession one intake form instance: owns both, the submitting flag
                   and the last success / error message

Nothing here talks to the database or the network. QuoteIntakeSession.submit()
hands its state to the submission pipeline in src/agents/orchestrator.py.
"""

import logging
import threading

from src.core.catalog import service_title

log = logging.getLogger("intake.cart")

FORM_FIELDS = ("name", "company", "email", "phone", "budget", "timeline", "message")


class ServiceSelection:
    """Ordered set of service ids. Insertion order is the display order."""

    def __init__(self, ids=None):
        self._ids = []
        for sid in ids or []:
            self.add(sid)

    def toggle(self, service_id: str) -> bool:
        """Flip membership. Returns True if the id is now selected."""
        if service_id in self._ids:
            self._ids.remove(service_id)
            return False
        self._ids.append(service_id)
        return True

    def add(self, service_id: str):
        if service_id not in self._ids:
            self._ids.append(service_id)

    def remove(self, service_id: str):
        if service_id in self._ids:
            self._ids.remove(service_id)

    def is_selected(self, service_id: str) -> bool:
        return service_id in self._ids

    def title_of(self, service_id: str) -> str:
        return service_title(service_id)

    def titles(self) -> list:
        return [service_title(sid) for sid in self._ids]

    @property
    def ids(self) -> list:
        return list(self._ids)

    def clear(self):
        self._ids = []

    def __len__(self):
        return len(self._ids)

    def __iter__(self):
        return iter(list(self._ids))

    def __contains__(self, service_id):
        return service_id in self._ids

    def __repr__(self):
        return f"ServiceSelection({self._ids!r})"


class ContactForm:
    """Contact + project fields. Values are kept exactly as entered."""

    def __init__(self, **values):
        self._values = dict.fromkeys(FORM_FIELDS, "")
        for k, v in values.items():
            self.set_field(k, v)

    def set_field(self, field: str, value):
        if field not in self._values:
            raise KeyError(f"Unknown form field: {field}")
        self._values[field] = "" if value is None else str(value)

    def get(self, field: str) -> str:
        return self._values[field]

    def snapshot(self) -> dict:
        return dict(self._values)

    def reset(self):
        self._values = dict.fromkeys(FORM_FIELDS, "")

    def __getattr__(self, name):
        values = self.__dict__.get("_values")
        if values is not None and name in values:
            return values[name]
        raise AttributeError(name)

    def __repr__(self):
        return f"ContactForm(name={self._values['name']!r}, email={self._values['email']!r})"


class QuoteIntakeSession:
    """One intake form: selection, form, submitting flag, last outcome."""

    def __init__(self, selection: ServiceSelection = None, form: ContactForm = None):
        self.selection = selection or ServiceSelection()
        self.form = form or ContactForm()
        self.submitting = False
        self.success_message = ""
        self.error_message = ""
        self.last_outcome = None
        self._lock = threading.Lock()

    def submit(self, repository=None, notifier=None) -> dict:
        """Run the submission pipeline once.

        A second call while one is in flight is refused without side effects.
        State is cleared on success only; on failure the user keeps their input.
        """
        from src.agents.orchestrator import submit_quote_request

        with self._lock:
            if self.submitting:
                log.info("Submission already in progress — ignored")
                return {"ok": False, "message": "", "error_kind": "busy"}
            self.submitting = True
        self.success_message = ""
        self.error_message = ""
        try:
            outcome = submit_quote_request(self.form, self.selection,
                                           repository=repository, notifier=notifier)
            self.last_outcome = outcome
            if outcome["ok"]:
                self.success_message = outcome["message"]
                self.form.reset()
                self.selection.clear()
            else:
                self.error_message = outcome["message"]
            return outcome
        finally:
            self.submitting = False
