"""BCS broker report (.xls, "TDSheet" sheet)."""

from brokerstat.parsers.brokers import BrokerInfo, BrokerStatementReader
from brokerstat.parsers.handlers import (
    AssetsParser,
    CashBalanceParser,
    CashFlowParser,
    PeriodParser,
    TradesParser,
)
from brokerstat.parsers.models import CashFlowType
from brokerstat.parsers.sections import Section

BCS = BrokerInfo(name="ООО «Компания БКС»", brief_name="bcs")

SHEET_NAME = "TDSheet"

TOTALS = ("Итого", "Всего")

CASH_FLOW_OPERATIONS = {
    "приход дс": CashFlowType.DEPOSIT,
    "зачисление дс": CashFlowType.DEPOSIT,
    "вывод дс": CashFlowType.WITHDRAWAL,
    "списание дс": CashFlowType.WITHDRAWAL,
    "комиссия": CashFlowType.FEE,
    "вознаграждение брокера": CashFlowType.FEE,
    "ндфл": CashFlowType.TAX_WITHHELD,
    "дивиденд": CashFlowType.DIVIDEND,
    "купон": CashFlowType.INTEREST,
    "проценты": CashFlowType.INTEREST,
}

# Trade settlements, reported in the trades section
SETTLEMENT_OPERATIONS = ("покупка", "продажа", "урегулирование сделок")


def create_reader() -> BrokerStatementReader:
    """Create BCS statement reader."""
    return BrokerStatementReader(BCS, [
        Section("Период:", parser=PeriodParser(), required=True),

        Section("1. Движение денежных средств", required=True),
        Section("1.1. Движение денежных средств по совершенным сделкам:", required=True),
        Section(
            "1.1.1. Движение денежных средств по совершенным сделкам (иным операциям) с "
            "ценными бумагами, по срочным сделкам, а также сделкам с иностранной валютой:",
            required=True),
        Section("Остаток денежных средств на начало периода (Рубль):", required=True),
        Section(
            "Остаток денежных средств на конец периода (Рубль):",
            parser=CashBalanceParser(currency="RUB", inline=True), required=True),
        Section("Рубль", exact=True, parser=CashFlowParser(
            columns={
                "date": ("Дата",),
                "operation": ("Операция",),
                "credit": ("Сумма зачисления",),
                "debit": ("Сумма списания",),
            },
            operations=CASH_FLOW_OPERATIONS,
            ignore=SETTLEMENT_OPERATIONS,
            skip_prefixes=TOTALS,
            currency="RUB",
        ), required=True),

        Section("2.1. Сделки:"),
        Section("Пай", exact=True, parser=TradesParser(
            columns={
                "instrument": ("Пай",),
                "date": ("Дата", "Дата сделки"),
                "side": ("Вид сделки",),
                "quantity": ("Количество",),
                "price": ("Цена",),
                "commission": ("Комиссия",),
                "currency": ("Валюта",),
            },
            buy_keywords=("покупка",),
            sell_keywords=("продажа",),
            skip_prefixes=TOTALS,
            currency="RUB",
        )),
        Section("2.3. Незавершенные сделки"),

        Section("3. Активы:", required=True),
        Section("Вид актива", parser=AssetsParser(
            columns={
                "instrument": ("Наименование",),
                "quantity": ("Количество на конец периода", "Количество"),
                "price": ("Цена закрытия",),
                "currency": ("Валюта цены",),
            },
            skip_prefixes=TOTALS,
            currency="RUB",
        ), required=True),
    ], sheet_name=SHEET_NAME, suffixes=(".xls",))
