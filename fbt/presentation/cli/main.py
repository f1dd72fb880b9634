"""
CLI 진입점 -- 모든 CLI 명령의 통합 디스패처

Usage:
    python -m fbt.presentation.cli.main init-db
    python -m fbt.presentation.cli.main calculate --channel default
    python -m fbt.presentation.cli.main calculate --all
    python -m fbt.presentation.cli.main recommend P1 --context PDP_RELATED
    python -m fbt.presentation.cli.main cart P1 P2
    python -m fbt.presentation.cli.main stats
    python -m fbt.presentation.cli.main settings --set enabled=true --set min_score_threshold=0.25
"""

import argparse
import sys

from fbt.domain.errors import SettingsValidationError
from fbt.domain.models import DisplayContext
from fbt.utils.logger import get_logger

logger = get_logger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """CLI 파서 생성"""
    parser = argparse.ArgumentParser(
        prog="fbt",
        description="함께 구매한 상품(FBT) 연관 엔진 CLI",
    )
    parser.add_argument("--db", type=str, default=None, help="SQLite DB 경로 (기본: FBT_DB_PATH)")

    subparsers = parser.add_subparsers(dest="command", help="명령")

    # init-db 명령
    subparsers.add_parser("init-db", help="스키마 생성 + 기본 설정 행 생성")

    # calculate 명령
    calc_parser = subparsers.add_parser("calculate", help="연관 계산 실행")
    calc_parser.add_argument("--channel", type=str, default=None, help="채널 ID")
    calc_parser.add_argument("--all", action="store_true", help="모든 활성 채널 병렬 실행")
    calc_parser.add_argument("--force", action="store_true", help="enabled=false여도 실행")

    # recommend 명령
    rec_parser = subparsers.add_parser("recommend", help="상품 추천 조회")
    rec_parser.add_argument("product_id", type=str, help="기준 상품 ID")
    rec_parser.add_argument(
        "--context", type=str, default=DisplayContext.PDP_RELATED.value,
        choices=[c.value for c in DisplayContext], help="노출 위치",
    )
    rec_parser.add_argument("--channel", type=str, default=None, help="채널 ID")
    rec_parser.add_argument("--raw", action="store_true", help="점수 포함 원본 연관 출력")

    # cart 명령
    cart_parser = subparsers.add_parser("cart", help="장바구니 추천 조회")
    cart_parser.add_argument("product_ids", nargs="+", help="장바구니 상품 ID")
    cart_parser.add_argument("--channel", type=str, default=None, help="채널 ID")

    # stats 명령
    stats_parser = subparsers.add_parser("stats", help="연관 통계")
    stats_parser.add_argument("--channel", type=str, default=None, help="채널 ID")

    # settings 명령
    settings_parser = subparsers.add_parser("settings", help="연관 계산 설정")
    settings_parser.add_argument("--show", action="store_true", help="현재 설정 출력")
    settings_parser.add_argument(
        "--set", action="append", default=[], metavar="KEY=VALUE", help="설정 변경 (반복 가능)",
    )
    settings_parser.add_argument("--reset", action="store_true", help="기본값으로 초기화")

    return parser


def _get_channel_ctx(channel_id=None):
    """ChannelContext 생성"""
    from fbt.settings.channel_context import ChannelContext
    if channel_id:
        return ChannelContext.from_channel_id(channel_id)
    return ChannelContext.default()


def _parse_assignments(pairs):
    """["key=value", ...] → {key: value}"""
    changes = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"KEY=VALUE 형식이 아닙니다: {pair}")
        key, value = pair.split("=", 1)
        changes[key.strip()] = value.strip()
    return changes


def cmd_init_db(args):
    """스키마 + 기본 설정 생성"""
    from fbt.infrastructure.database.repos import AssociationSettingsRepository
    from fbt.infrastructure.database.schema import init_db

    path = init_db(args.db)
    AssociationSettingsRepository(db_path=path).ensure_defaults()
    print(f"DB 초기화 완료: {path}")
    return 0


def cmd_calculate(args):
    """연관 계산 명령 실행"""
    from fbt.application.use_cases.calculate_associations_flow import CalculateAssociationsFlow

    if args.all:
        from fbt.application.scheduler.job_scheduler import MultiChannelRunner

        results = MultiChannelRunner().run_parallel(
            task_fn=lambda ctx: CalculateAssociationsFlow(channel_ctx=ctx, db_path=args.db).run(),
            task_name="calculate_associations",
        )
        for r in results:
            print(f"  {r['channel_id']}: success={r['success']} {r.get('result') or r.get('error')}")
        return 0 if all(r.get("success") for r in results) else 1

    ctx = _get_channel_ctx(args.channel)

    if args.force:
        from fbt.application.services.association_calculation_service import (
            AssociationCalculationService,
        )
        from fbt.domain.errors import CalculationError
        from fbt.infrastructure.database.repos import AssociationSettingsRepository

        settings_repo = AssociationSettingsRepository(db_path=args.db)
        try:
            summary = AssociationCalculationService(db_path=args.db).calculate(
                settings_repo.get_settings(), channel_id=ctx.channel_id
            )
        except CalculationError as e:
            print(f"연관 계산 실패: {e}")
            return 1
        settings_repo.update_calculation_stats(summary.associations_written, summary.duration_ms)
        print(f"연관 계산 결과: {summary.to_dict()}")
        return 0

    result = CalculateAssociationsFlow(channel_ctx=ctx, db_path=args.db).run()
    print(f"연관 계산 결과: status={result.get('status')}, "
          f"associations={result.get('associations_count', 0)}, "
          f"duration_ms={result.get('duration_ms', 0)}"
          + (f", error={result['error']}" if result.get("error") else ""))
    return 0 if result.get("success") else 1


def cmd_recommend(args):
    """상품 추천 명령"""
    from fbt.application.services.recommendation_service import RecommendationService

    ctx = _get_channel_ctx(args.channel)
    service = RecommendationService(db_path=args.db, channel_id=ctx.channel_id)

    if args.raw:
        rows = service.get_product_associations(args.product_id)
        print(f"연관 원본: {len(rows)}건")
        for a in rows:
            lift = f"{a.lift:.3f}" if a.lift is not None else "-"
            print(f"  {a.target_product_id:20s} final={a.final_score:.3f} "
                  f"f={a.frequency_score:.3f} r={a.recency_score:.3f} "
                  f"v={a.value_score:.3f} lift={lift} count={a.cooccurrence_count}")
        return 0

    ids = service.recommendations_for_product(args.product_id, DisplayContext(args.context))
    print(f"추천 ({args.context}): {len(ids)}개")
    for pid in ids:
        print(f"  {pid}")
    return 0


def cmd_cart(args):
    """장바구니 추천 명령"""
    from fbt.application.services.recommendation_service import RecommendationService

    ctx = _get_channel_ctx(args.channel)
    service = RecommendationService(db_path=args.db, channel_id=ctx.channel_id)
    ids = service.recommendations_for_cart(args.product_ids)
    print(f"장바구니 추천: {len(ids)}개")
    for pid in ids:
        print(f"  {pid}")
    return 0


def cmd_stats(args):
    """연관 통계 명령"""
    from fbt.application.services.recommendation_service import RecommendationService
    from fbt.infrastructure.database.repos import AssociationSettingsRepository

    ctx = _get_channel_ctx(args.channel)
    stats = RecommendationService(db_path=args.db, channel_id=ctx.channel_id).get_stats()
    settings = AssociationSettingsRepository(db_path=args.db).get_settings()

    print(f"채널: {ctx.channel_id}")
    print(f"  연관 수: {stats.total_associations}")
    print(f"  추천 보유 상품: {stats.products_with_recommendations}")
    print(f"  상품당 평균 추천: {stats.average_recommendations_per_product}")
    print(f"  마지막 계산: {settings.last_calculation or '-'} "
          f"({settings.last_calculation_duration_ms or 0}ms, "
          f"{settings.last_calculation_associations_count or 0}건)")
    return 0


def cmd_settings(args):
    """설정 명령"""
    from fbt.infrastructure.database.repos import AssociationSettingsRepository

    repo = AssociationSettingsRepository(db_path=args.db)

    if args.reset:
        settings = repo.reset_to_defaults()
        print("설정 초기화 완료")
    elif args.set:
        try:
            settings = repo.update_settings(**_parse_assignments(args.set))
        except (SettingsValidationError, ValueError) as e:
            print(f"설정 변경 실패: {e}")
            return 1
        print("설정 변경 완료")
    else:
        settings = repo.get_settings()

    for key, value in settings.to_dict().items():
        print(f"  {key:38s} {value}")
    return 0


def main(argv=None):
    """CLI 메인 진입점"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "init-db": cmd_init_db,
        "calculate": cmd_calculate,
        "recommend": cmd_recommend,
        "cart": cmd_cart,
        "stats": cmd_stats,
        "settings": cmd_settings,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 0
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
