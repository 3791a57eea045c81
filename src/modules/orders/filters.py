import django_filters

from modules.orders.constants import OrderStatus
from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=OrderStatus.choices)
    customer_id = django_filters.UUIDFilter(field_name="customer_id")
    product_id = django_filters.UUIDFilter(field_name="items__product_id", distinct=True)
    confirmed_after = django_filters.IsoDateTimeFilter(
        field_name="confirmed_at", lookup_expr="gte"
    )
    confirmed_before = django_filters.IsoDateTimeFilter(
        field_name="confirmed_at", lookup_expr="lte"
    )
    min_total = django_filters.NumberFilter(field_name="total_amount", lookup_expr="gte")
    max_total = django_filters.NumberFilter(field_name="total_amount", lookup_expr="lte")
    include_carts = django_filters.BooleanFilter(method="filter_include_carts")

    class Meta:
        model = Order
        fields = [
            "status",
            "customer_id",
            "product_id",
            "confirmed_after",
            "confirmed_before",
            "min_total",
            "max_total",
            "include_carts",
        ]

    def filter_include_carts(self, queryset, name, value):
        if value is False:
            return queryset.exclude(status=OrderStatus.CART)
        return queryset
