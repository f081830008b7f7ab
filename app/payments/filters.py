import django_filters as filters
from django.db.models import Q

from payments.models import PaymentRecord
from payments.state_machines import PaymentStatus


class PaymentRecordFilter(filters.FilterSet):
    """Admin list filters; dates bound created_at, search matches ids and purchaser."""

    status = filters.ChoiceFilter(choices=PaymentStatus.choices)
    start_date = filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    end_date = filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    search = filters.CharFilter(method="filter_search")

    class Meta:
        model = PaymentRecord
        fields = ["status", "payment_method", "payment_gateway", "start_date", "end_date", "search"]

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(order_id__icontains=value)
            | Q(transaction_id__icontains=value)
            | Q(user_name__icontains=value)
            | Q(user_email__icontains=value)
        )


class MyPaymentFilter(filters.FilterSet):
    status = filters.ChoiceFilter(choices=PaymentStatus.choices)

    class Meta:
        model = PaymentRecord
        fields = ["status"]
