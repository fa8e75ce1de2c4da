"""
WhatsApp message copy.

Every customer-facing text lives here so the handlers only decide which
message to send, not how it reads. WhatsApp renders *bold*.
"""

from datetime import date, datetime
from typing import Optional, Sequence

from app.config import settings
from app.core.scheduling.store import Appointment, Employee

WEEKDAY_NAMES = ["lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"]
WEEKDAY_SHORT = ["lun", "mar", "mié", "jue", "vie", "sáb", "dom"]
MONTH_NAMES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio", "julio",
    "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]

STATUS_EMOJIS = {
    "pending": "⏳",
    "confirmed": "✅",
    "completed": "✔️",
    "cancelled": "❌",
}

# Fixed one-liners
NO_EMPLOYEES = "Lo siento, no hay profesionales disponibles en este momento. Por favor intenta más tarde."
GENERIC_ERROR = "Lo siento, hubo un error. Por favor escribe \"inicio\" para comenzar de nuevo."
UNEXPECTED_ERROR = "Ocurrió un error inesperado. Por favor intenta de nuevo más tarde."
INVALID_NAME = "Por favor ingresa un nombre válido."
DATE_NOT_UNDERSTOOD = (
    "No pude entender la fecha. Intenta con: \"mañana\", \"viernes\", "
    "\"20 de noviembre\", etc."
)
SLOT_UNAVAILABLE = "Ese horario no está disponible. Por favor elige otro."
SLOT_TAKEN = "Lo siento, ese horario ya no está disponible. Por favor elige otro."
CONFIRM_PROMPT = "Por favor responde *Sí* para confirmar o *No* para cancelar."
BOOKING_ABORTED = (
    "Reserva cancelada. Si quieres intentar de nuevo, escribe \"agendar\" o \"inicio\"."
)
NO_APPOINTMENTS_TO_CANCEL = (
    "No tienes turnos próximos para cancelar.\n\n"
    "¿Quieres agendar un turno nuevo? Escribe \"agendar\"."
)
CANCEL_CONFIRM_PROMPT = (
    "Por favor responde *Sí* para confirmar la cancelación o *No* para mantener el turno."
)
APPOINTMENT_KEPT = "✅ Tu turno se mantiene.\n\nSi necesitas algo más, escribe \"ayuda\"."


class MessageFormatter:
    """Builds the text of every outbound message."""

    # === Dates and times ===

    @staticmethod
    def format_date(day: date) -> str:
        """Long Spanish date: "viernes 16 de octubre"."""
        return f"{WEEKDAY_NAMES[day.weekday()]} {day.day} de {MONTH_NAMES[day.month - 1]}"

    @staticmethod
    def format_time(time_str: str) -> str:
        """12-hour clock: "15:00" -> "3:00 PM"."""
        hours, minutes = (int(part) for part in time_str.split(":"))
        period = "PM" if hours >= 12 else "AM"
        display = hours - 12 if hours > 12 else (12 if hours == 0 else hours)
        return f"{display}:{minutes:02d} {period}"

    @staticmethod
    def _local(moment: datetime) -> datetime:
        return moment.astimezone(settings.tzinfo) if moment.tzinfo else moment

    # === Onboarding and menus ===

    @staticmethod
    def format_welcome(name: Optional[str] = None) -> str:
        """Menu for a known customer, name request for a new one."""
        if name:
            return (
                f"¡Hola {name}! 👋 ¿En qué puedo ayudarte?\n\n"
                "1️⃣ Agendar un turno\n"
                "2️⃣ Cancelar un turno\n"
                "3️⃣ Ver mis turnos\n"
                "4️⃣ Hablar con alguien\n\n"
                "Responde con el número o escríbeme directamente lo que necesitas."
            )

        return (
            "¡Hola! 👋 Bienvenido a nuestro sistema de reservas.\n\n"
            "Para poder ayudarte mejor, primero necesito saber tu nombre.\n"
            "¿Cómo te llamas?"
        )

    @staticmethod
    def format_help() -> str:
        return (
            "🤖 *Puedo ayudarte con:*\n\n"
            "📅 *Agendar turno*\n"
            "Escribe \"agendar\" o \"quiero turno\" y te guiaré.\n"
            "Ejemplo: \"Quiero turno para mañana a las 3pm\"\n\n"
            "❌ *Cancelar turno*\n"
            "Escribe \"cancelar\" para ver tus turnos y elegir cuál cancelar.\n\n"
            "📋 *Ver turnos*\n"
            "Escribe \"mis turnos\" para ver tus próximas citas.\n\n"
            "🔄 Para empezar de nuevo, escribe \"inicio\"\n"
        )

    @staticmethod
    def format_not_understood() -> str:
        return (
            "🤔 No entendí bien lo que necesitas.\n\n"
            "Puedo ayudarte a:\n"
            "• Agendar un turno (escribe \"agendar\")\n"
            "• Cancelar un turno (escribe \"cancelar\")\n"
            "• Ver tus turnos (escribe \"mis turnos\")\n\n"
            "¿Qué necesitas?"
        )

    @staticmethod
    def format_handoff() -> str:
        return (
            "👤 Le avisé a nuestro equipo. Una persona te va a escribir por este "
            "mismo chat lo antes posible.\n\n"
            "Mientras tanto, puedes escribir \"ayuda\" para ver qué puedo hacer."
        )

    @staticmethod
    def format_reschedule_hint() -> str:
        return (
            "🔄 Para reprogramar, primero cancelamos el turno actual y luego "
            "agendas uno nuevo escribiendo \"agendar\"."
        )

    @staticmethod
    def format_error(error: str) -> str:
        return f"❌ {error}\n\n¿Necesitas ayuda? Escribe \"ayuda\"."

    # === Booking ===

    @staticmethod
    def format_employee_list(employees: Sequence[Employee]) -> str:
        """Numbered roster plus a final "any available" option."""
        if not employees:
            return "Lo siento, no hay profesionales disponibles en este momento."

        if len(employees) == 1:
            employee = employees[0]
            role = f" ({employee.role})" if employee.role else ""
            return f"Te agendaré con {employee.name}{role}."

        lines = []
        for index, employee in enumerate(employees, start=1):
            role = f" - {employee.role}" if employee.role else ""
            lines.append(f"{index}. {employee.name}{role}")

        return (
            "¿Con qué profesional te gustaría agendar?\n\n"
            + "\n".join(lines)
            + f"\n{len(employees) + 1}. ⚡ Cualquiera disponible\n\n"
            "Responde con el número o el nombre."
        )

    @staticmethod
    def format_employee_retry(option_count: int) -> str:
        return (
            f"Por favor selecciona un número del 1 al {option_count} "
            "o el nombre del profesional."
        )

    @staticmethod
    def format_ask_for_date() -> str:
        return (
            "📅 ¿Para qué día te gustaría agendar?\n\n"
            "Puedes decir:\n"
            "• \"Mañana\"\n"
            "• \"Viernes\"\n"
            "• \"20 de noviembre\"\n"
            "• \"Próximo lunes\"\n"
        )

    @classmethod
    def format_time_slots(cls, day: date, slots: Sequence[str]) -> str:
        """
        Numbered slot list grouped into morning and afternoon.

        Numbering continues across both groups so the index typed back
        always refers to the position in ``slots``.
        """
        date_str = cls.format_date(day)

        if not slots:
            return (
                f"No hay horarios disponibles para {date_str}. 😕\n\n"
                "Escribe \"inicio\" para elegir otro día."
            )

        morning = [slot for slot in slots if int(slot.split(":")[0]) < 12]
        afternoon = [slot for slot in slots if int(slot.split(":")[0]) >= 12]

        message = f"Horarios disponibles para {date_str}:\n\n"

        if morning:
            message += "🌅 *Mañana:*\n"
            for index, slot in enumerate(morning, start=1):
                message += f"{index}. {cls.format_time(slot)}\n"
            message += "\n"

        if afternoon:
            message += "🌆 *Tarde:*\n"
            for offset, slot in enumerate(afternoon, start=1):
                index = len(morning) + offset
                last = " ⭐ (último)" if index == len(slots) else ""
                message += f"{index}. {cls.format_time(slot)}{last}\n"

        message += "\nResponde con el número del horario que prefieres."
        return message

    @staticmethod
    def format_slot_retry(slot_count: int) -> str:
        return (
            f"Por favor elige un horario del 1 al {slot_count} "
            "o escribe una hora específica."
        )

    @classmethod
    def format_confirmation(
        cls,
        day: date,
        time_str: str,
        employee_name: str,
    ) -> str:
        return (
            "✅ *¿Confirmar tu turno?*\n\n"
            f"📅 {cls.format_date(day)}\n"
            f"🕐 {cls.format_time(time_str)}\n"
            f"👤 {employee_name}\n\n"
            "¿Está todo bien? Responde *Sí* para confirmar o *No* para cancelar."
        )

    @classmethod
    def format_appointment_confirmed(
        cls,
        appointment_id: str,
        day: date,
        time_str: str,
        employee_name: str,
    ) -> str:
        return (
            "✅ *¡Turno confirmado!*\n\n"
            f"📅 {cls.format_date(day)}\n"
            f"🕐 {cls.format_time(time_str)}\n"
            f"👤 {employee_name}\n\n"
            "🔔 Te recordaré 24 horas antes.\n\n"
            f"Para cancelar, escribe: *cancelar {appointment_id[:8]}*"
        )

    # === Viewing and cancellation ===

    @classmethod
    def format_appointment_list(
        cls,
        appointments: Sequence[Appointment],
        footer: str = "Para cancelar un turno, escribe \"cancelar\".",
    ) -> str:
        """Numbered list of appointments with status emoji."""
        if not appointments:
            return (
                "No tienes turnos agendados.\n\n"
                "¿Quieres agendar uno? Escribe \"agendar\" o \"quiero turno\"."
            )

        message = "📋 *Tus próximos turnos:*\n\n"
        for index, appointment in enumerate(appointments, start=1):
            start = cls._local(appointment.start_time)
            status = STATUS_EMOJIS.get(appointment.status.value, "📅")
            message += (
                f"{index}. {status} {WEEKDAY_SHORT[start.weekday()]} "
                f"{start.day}/{start.month:02d} - {start:%H:%M}\n"
                f"   👤 {appointment.employee_name or 'Por asignar'}\n\n"
            )

        message += footer
        return message

    @classmethod
    def format_cancellation_list(cls, appointments: Sequence[Appointment]) -> str:
        return cls.format_appointment_list(
            appointments,
            footer="¿Cuál quieres cancelar? Responde con el número del turno.",
        )

    @staticmethod
    def format_cancellation_retry(option_count: int) -> str:
        return f"Por favor selecciona un número del 1 al {option_count}."

    @classmethod
    def format_cancellation_confirmation(cls, appointment: Appointment) -> str:
        start = cls._local(appointment.start_time)
        return (
            "❌ ¿Seguro que quieres cancelar este turno?\n\n"
            f"📅 {cls.format_date(start.date())}\n"
            f"🕐 {cls.format_time(start.strftime('%H:%M'))}\n"
            f"👤 {appointment.employee_name or 'Por asignar'}\n\n"
            "Responde *Sí* para confirmar la cancelación o *No* para mantener el turno."
        )

    @staticmethod
    def format_cancellation_success() -> str:
        return (
            "✅ *Turno cancelado exitosamente.*\n\n"
            "Si cambias de opinión, puedes reagendar escribiendo \"agendar\" o \"quiero turno\"."
        )

    # === Reminders ===

    @classmethod
    def format_reminder(
        cls,
        reminder_type: str,
        employee_name: str,
        start: datetime,
        end: datetime,
    ) -> str:
        """Text of the 24h or 2h reminder."""
        start = cls._local(start)
        end = cls._local(end)
        details = (
            f"👤 Profesional: {employee_name}\n"
            f"📅 Fecha: {cls.format_date(start.date())}\n"
            f"⏰ Hora: {cls.format_time(start.strftime('%H:%M'))} - "
            f"{cls.format_time(end.strftime('%H:%M'))}\n\n"
        )

        if reminder_type == "24h":
            return "🔔 Recordatorio: Mañana tienes una cita\n\n" + details + "Te esperamos!"
        return "⏰ Tu cita es en 2 horas!\n\n" + details + "Nos vemos pronto!"
