from django.contrib import admin

from .models import Transaction, TransactionLog


class TransactionLogInline(admin.TabularInline):
    model = TransactionLog
    extra = 0
    can_delete = False
    readonly_fields = ("status_code", "message", "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "port", "amount", "status", "ref_id", "tracking_code", "created_at")
    list_filter = ("port", "status")
    search_fields = ("id", "ref_id", "tracking_code")
    readonly_fields = (
        "port",
        "amount",
        "ref_id",
        "tracking_code",
        "status",
        "payer_meta",
        "ip",
        "payment_date",
        "verify_claimed_at",
        "created_at",
        "updated_at",
    )
    inlines = [TransactionLogInline]

    def has_add_permission(self, request):
        return False


@admin.register(TransactionLog)
class TransactionLogAdmin(admin.ModelAdmin):
    list_display = ("transaction", "status_code", "message", "created_at")
    search_fields = ("transaction__id", "status_code")
    readonly_fields = ("transaction", "status_code", "message", "created_at")
