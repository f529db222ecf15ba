"""Map semantic field roles to the values typed or selected for them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from .config import (
    DEFAULT_INQUIRY_LABEL,
    MULTI_ROLE_SEPARATOR,
    PHONE_DELIMITER,
    POSTAL_CODE_DELIMITER,
)
from .matching import normalize_text
from .models import FieldDescriptor, ProfileRecord

logger = logging.getLogger(__name__)

OTHER_ROLE = "other"
AGREEMENT_ROLE = "agreement"
CAPTCHA_ROLE = "captcha"

ROLE_ALIASES: Dict[str, str] = {
    "name_kana": "nameKana",
    "first_name": "firstName",
    "last_name": "lastName",
    "first_name_kana": "firstNameKana",
    "last_name_kana": "lastNameKana",
    "postal_code": "postalCode",
    "company": "companyName",
    "company-name": "companyName",
    "company_name": "companyName",
    "company_phone": "companyPhone",
    "personal_phone": "personalPhone",
    "body": "message",
    "category": "inquiryType",
    "inquiry_category": "inquiryType",
    "inquiryCategory": "inquiryType",
    "title": "position",
    "privacy": AGREEMENT_ROLE,
    "privacyPolicy": AGREEMENT_ROLE,
    "consent": AGREEMENT_ROLE,
    "terms": AGREEMENT_ROLE,
}

# Roles whose text inputs may receive several values joined together.
JOINABLE_TYPES: FrozenSet[str] = frozenset({"text", "textarea"})


@dataclass(frozen=True)
class ResolverContext:
    message: Optional[str] = None
    phone_delimiter: str = PHONE_DELIMITER
    default_inquiry_label: str = DEFAULT_INQUIRY_LABEL


@dataclass(frozen=True)
class ResolvedValue:
    """Per-role values for audit plus the single value written to the field."""

    per_role: Tuple[Tuple[str, str], ...]
    write_value: str
    satisfied_roles: Tuple[str, ...] = field(default_factory=tuple)
    inferred_role: str = ""

    def value_for(self, role: str) -> str:
        for tag, value in self.per_role:
            if tag == role:
                return value
        return ""


Resolver = Callable[[ProfileRecord, ResolverContext], str]


def canonical_role(tag: Optional[str]) -> str:
    cleaned = (tag or "").strip()
    return ROLE_ALIASES.get(cleaned, cleaned)


def is_agreement_role(tag: Optional[str]) -> bool:
    return canonical_role(tag) == AGREEMENT_ROLE


def to_hiragana(text: str) -> str:
    """Convert full-width katakana to hiragana, leaving other characters untouched."""
    converted = []
    for ch in text:
        code = ord(ch)
        if 0x30A1 <= code <= 0x30F6:
            converted.append(chr(code - 0x60))
        else:
            converted.append(ch)
    return "".join(converted)


def _join(parts: List[str], separator: str) -> str:
    return separator.join(part for part in parts if part)


def _key(*keys: str) -> Resolver:
    def resolve(profile: ProfileRecord, ctx: ResolverContext) -> str:
        return profile.first(*keys)

    return resolve


def _whole_name(profile: ProfileRecord, ctx: ResolverContext) -> str:
    return profile.first("name") or _join([profile.first("lastName"), profile.first("firstName")], " ")


def _whole_kana(profile: ProfileRecord, ctx: ResolverContext) -> str:
    return profile.first("nameKana") or _join([profile.first("lastNameKana"), profile.first("firstNameKana")], " ")


def _whole_hira(profile: ProfileRecord, ctx: ResolverContext) -> str:
    explicit = profile.first("nameHira")
    if explicit:
        return explicit
    parts = [profile.first("lastNameHira"), profile.first("firstNameHira")]
    if any(parts):
        return _join(parts, " ")
    return to_hiragana(_whole_kana(profile, ctx))


def _split_name(part_key: str) -> Resolver:
    def resolve(profile: ProfileRecord, ctx: ResolverContext) -> str:
        return profile.first(part_key) or _whole_name(profile, ctx)

    return resolve


def _split_kana(part_key: str) -> Resolver:
    def resolve(profile: ProfileRecord, ctx: ResolverContext) -> str:
        return profile.first(part_key) or _whole_kana(profile, ctx)

    return resolve


def _split_hira(part_key: str, kana_key: str) -> Resolver:
    def resolve(profile: ProfileRecord, ctx: ResolverContext) -> str:
        explicit = profile.first(part_key)
        if explicit:
            return explicit
        kana = profile.first(kana_key)
        if kana:
            return to_hiragana(kana)
        return _whole_hira(profile, ctx)

    return resolve


def _phone(profile: ProfileRecord, ctx: ResolverContext) -> str:
    parts = [profile.first("phone1"), profile.first("phone2"), profile.first("phone3")]
    if any(parts):
        return _join(parts, ctx.phone_delimiter)
    return profile.first("phone")


def _phone_with_fallback(key: str) -> Resolver:
    def resolve(profile: ProfileRecord, ctx: ResolverContext) -> str:
        return profile.first(key) or _phone(profile, ctx)

    return resolve


def _postal_code(profile: ProfileRecord, ctx: ResolverContext) -> str:
    parts = [profile.first("postalCode1"), profile.first("postalCode2")]
    if any(parts):
        return _join(parts, POSTAL_CODE_DELIMITER)
    return profile.first("postalCode")


def _address(profile: ProfileRecord, ctx: ResolverContext) -> str:
    parts = [profile.first(key) for key in ("city", "town", "street", "building")]
    if any(parts):
        return "".join(parts)
    return profile.first("address")


def _street_address(profile: ProfileRecord, ctx: ResolverContext) -> str:
    parts = [profile.first("town"), profile.first("street")]
    if any(parts):
        return "".join(parts)
    return profile.first("streetAddress")


def _inquiry_type(profile: ProfileRecord, ctx: ResolverContext) -> str:
    return profile.first("inquiryType", "inquiryCategory") or ctx.default_inquiry_label


def _message(profile: ProfileRecord, ctx: ResolverContext) -> str:
    if ctx.message and ctx.message.strip():
        return ctx.message
    if profile.message and profile.message.strip():
        return profile.message
    return profile.get("message")


def _empty(profile: ProfileRecord, ctx: ResolverContext) -> str:
    return ""


ROLE_RESOLVERS: Dict[str, Resolver] = {
    # name cluster
    "name": _whole_name,
    "lastName": _split_name("lastName"),
    "firstName": _split_name("firstName"),
    "nameKana": _whole_kana,
    "lastNameKana": _split_kana("lastNameKana"),
    "firstNameKana": _split_kana("firstNameKana"),
    "nameHira": _whole_hira,
    "lastNameHira": _split_hira("lastNameHira", "lastNameKana"),
    "firstNameHira": _split_hira("firstNameHira", "firstNameKana"),
    # contact cluster
    "email": _key("email"),
    "confirmEmail": _key("confirmEmail", "email"),
    "phone": _phone,
    "phone1": _key("phone1"),
    "phone2": _key("phone2"),
    "phone3": _key("phone3"),
    "companyPhone": _phone_with_fallback("companyPhone"),
    "personalPhone": _phone_with_fallback("personalPhone"),
    "corporateSiteUrl": _key("corporateSiteUrl"),
    # organization cluster
    "companyName": _key("companyName", "company"),
    "companyNameKana": _key("companyNameKana"),
    "department": _key("department"),
    "position": _key("position", "title"),
    "companyType": _key("companyType"),
    "industry": _key("industry"),
    # address cluster
    "postalCode": _postal_code,
    "postalCode1": _key("postalCode1"),
    "postalCode2": _key("postalCode2"),
    "prefecture": _key("prefecture"),
    "city": _key("city"),
    "town": _key("town"),
    "street": _key("street"),
    "building": _key("building"),
    "address": _address,
    "streetAddress": _street_address,
    "country": _key("country"),
    # categorical / free text
    "subject": _key("subject"),
    "inquiryType": _inquiry_type,
    "message": _message,
    "gender": _key("gender"),
    "age": _key("age"),
    "referral": _key("referral"),
    # non-writable
    AGREEMENT_ROLE: _empty,
    OTHER_ROLE: _empty,
}

KNOWN_ROLES: Tuple[str, ...] = tuple(ROLE_RESOLVERS)

# Checked in order against the normalised label; the first hit wins.
LABEL_ROLE_HINTS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("確認用メール", "メール(確認", "メールアドレス(確認", "confirm email", "email confirm"), "confirmEmail"),
    (("メール", "e-mail", "email", "mail"), "email"),
    (("フリガナ", "ふりがな", "カナ", "kana"), "nameKana"),
    (("郵便", "〒", "zip", "postal"), "postalCode"),
    (("都道府県", "prefecture"), "prefecture"),
    (("住所", "所在地", "address"), "address"),
    (("電話", "携帯", "tel", "phone"), "phone"),
    (("会社", "企業", "法人", "団体", "貴社", "company", "organization"), "companyName"),
    (("部署", "所属", "department"), "department"),
    (("役職", "job title", "position"), "position"),
    (("件名", "subject"), "subject"),
    (("種別", "区分", "カテゴリ", "category"), "inquiryType"),
    (("お問い合わせ内容", "ご相談内容", "本文", "内容", "message"), "message"),
    (("ホームページ", "website", "url"), "corporateSiteUrl"),
    (("氏名", "お名前", "名前", "担当者", "name"), "name"),
)


def value_for_role(
    role: str,
    profile: ProfileRecord,
    context: Optional[ResolverContext] = None,
) -> str:
    """Return the value for ``role``; unknown roles resolve to an empty string."""
    resolver = ROLE_RESOLVERS.get(canonical_role(role))
    if resolver is None:
        logger.debug("No resolver for role %r", role)
        return ""
    return resolver(profile, context or ResolverContext())


def role_from_label(label: Optional[str]) -> str:
    """Guess a known role from a field caption, or return an empty string."""
    text = normalize_text(label)
    if not text:
        return ""
    for keywords, role in LABEL_ROLE_HINTS:
        if any(keyword in text for keyword in keywords):
            return role
    return ""


def resolve_field_value(
    descriptor: FieldDescriptor,
    profile: ProfileRecord,
    context: Optional[ResolverContext] = None,
    *,
    separator: str = MULTI_ROLE_SEPARATOR,
) -> ResolvedValue:
    ctx = context or ResolverContext()
    per_role: List[Tuple[str, str]] = []
    for role in descriptor.roles:
        per_role.append((role, value_for_role(role, profile, ctx)))

    inferred = ""
    unmapped = all(canonical_role(role) not in ROLE_RESOLVERS for role in descriptor.roles)
    if descriptor.roles and unmapped:
        inferred = role_from_label(descriptor.label)
        hinted = value_for_role(inferred, profile, ctx) if inferred else ""
        if hinted.strip():
            logger.debug("Label %r mapped to role %s for roles %s", descriptor.label, inferred, descriptor.roles)
            per_role[0] = (per_role[0][0], hinted)
        else:
            inferred = ""

    satisfied = tuple(
        role for role, value in per_role if value.strip() and canonical_role(role) != OTHER_ROLE
    )
    non_empty: List[str] = []
    for _, value in per_role:
        if value.strip() and value not in non_empty:
            non_empty.append(value)

    if descriptor.preferred_option:
        write_value = descriptor.preferred_option
    elif descriptor.type in JOINABLE_TYPES and len(non_empty) > 1:
        write_value = separator.join(non_empty)
    elif non_empty:
        write_value = non_empty[0]
    else:
        write_value = ""

    return ResolvedValue(
        per_role=tuple(per_role),
        write_value=write_value,
        satisfied_roles=satisfied,
        inferred_role=inferred,
    )
